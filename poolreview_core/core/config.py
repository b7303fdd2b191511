from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
import tomllib
from typing import Any

from .errors import ConfigError


DEFAULT_FORBIDDEN_DATASHEET_DOMAINS: tuple[str, ...] = (
    "rs-online.com",
    "digikey.com",
    "mouser.com",
    "farnell.com",
    "octopart.com",
)


@dataclass(frozen=True)
class ReviewConfig:
    baseline: str = "master"
    images_prefix: str = ""
    forbidden_datasheet_domains: tuple[str, ...] = DEFAULT_FORBIDDEN_DATASHEET_DOMAINS
    symbol_zoom: float = 1.0
    symbol_margin_mm: float = 1.25
    package_zoom: float = 5.0
    package_margin_mm: float = 0.0

    def __post_init__(self) -> None:
        if not self.baseline.strip():
            raise ConfigError("baseline must be non-empty")
        if self.symbol_zoom <= 0 or self.package_zoom <= 0:
            raise ConfigError("zoom factors must be > 0")
        if self.symbol_margin_mm < 0 or self.package_margin_mm < 0:
            raise ConfigError("margins must be >= 0")

    def with_overrides(self, **overrides: Any) -> "ReviewConfig":
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        return replace(self, **values)


def load_config(path: str | Path | None) -> ReviewConfig:
    if path is None:
        return ReviewConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"config file not found: {config_path}")
    try:
        with config_path.open("rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid config file {config_path}: {exc}") from exc
    section = raw.get("review", raw)
    if not isinstance(section, dict):
        raise ConfigError("[review] must be a table")
    return parse_config(section)


def parse_config(raw: dict[str, Any]) -> ReviewConfig:
    known = {f.name for f in fields(ReviewConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
    values: dict[str, Any] = {}
    if "baseline" in raw:
        values["baseline"] = _coerce_str(raw["baseline"], "baseline")
    if "images_prefix" in raw:
        values["images_prefix"] = _coerce_str(raw["images_prefix"], "images_prefix")
    if "forbidden_datasheet_domains" in raw:
        domains = raw["forbidden_datasheet_domains"]
        if not isinstance(domains, list) or not all(isinstance(d, str) for d in domains):
            raise ConfigError("forbidden_datasheet_domains must be a list of strings")
        values["forbidden_datasheet_domains"] = tuple(domains)
    for key in ("symbol_zoom", "symbol_margin_mm", "package_zoom", "package_margin_mm"):
        if key in raw:
            values[key] = _coerce_float(raw[key], key)
    return ReviewConfig(**values)


def _coerce_str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _coerce_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number")
    return float(value)
