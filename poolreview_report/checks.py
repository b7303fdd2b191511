from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable, Mapping

from poolreview_core.core.config import DEFAULT_FORBIDDEN_DATASHEET_DOMAINS
from poolreview_core.core.natural_order import natural_sorted


WHITESPACE_WARNING = "(:warning: has trailing/leading whitespace)"


class RulesCheckLevel(IntEnum):
    PASS = 0
    WARN = 1
    FAIL = 2

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class RulesCheckError:
    level: RulesCheckLevel
    comment: str


@dataclass(frozen=True)
class RulesCheckResult:
    errors: tuple[RulesCheckError, ...] = ()

    @property
    def level(self) -> RulesCheckLevel:
        if not self.errors:
            return RulesCheckLevel.PASS
        return max(error.level for error in self.errors)

    @property
    def passed(self) -> bool:
        return self.level == RulesCheckLevel.PASS


def needs_trim(value: str) -> bool:
    return bool(value) and (value[0].isspace() or value[-1].isspace())


def check_datasheet(url: str, forbidden_domains: Iterable[str] = DEFAULT_FORBIDDEN_DATASHEET_DOMAINS) -> str | None:
    for domain in forbidden_domains:
        if domain in url:
            return domain
    return None


def check_package(doc: Mapping[str, Any], padstacks: Mapping[str, Any]) -> RulesCheckResult:
    errors: list[RulesCheckError] = []
    entries = _values(doc.get("pads"))
    pads = _mappings(entries)
    if not entries:
        errors.append(RulesCheckError(RulesCheckLevel.FAIL, "Package has no pads"))
    elif len(pads) != len(entries):
        malformed = len(entries) - len(pads)
        errors.append(RulesCheckError(RulesCheckLevel.FAIL, f"Package has {malformed} malformed pad entries"))

    names = Counter(str(pad.get("name", "")) for pad in pads)
    for name in natural_sorted(names):
        if names[name] > 1:
            errors.append(RulesCheckError(RulesCheckLevel.FAIL, f"Pad name {name} is used {names[name]} times"))
        if needs_trim(name):
            errors.append(RulesCheckError(RulesCheckLevel.WARN, f"Pad name '{name}' has trailing/leading whitespace"))

    for pad in natural_sorted(pads, key=lambda p: str(p.get("name", ""))):
        padstack = pad.get("padstack")
        if not isinstance(padstack, str) or padstack not in padstacks:
            errors.append(
                RulesCheckError(RulesCheckLevel.FAIL, f"Pad {pad.get('name', '')} uses unknown padstack {padstack}")
            )

    if not any(str(text.get("text", "")) == "$RD" for text in _mappings(_values(doc.get("texts")))):
        errors.append(RulesCheckError(RulesCheckLevel.WARN, "Package has no reference designator text"))

    if not any(poly.get("layer") == "courtyard" for poly in _mappings(_values(doc.get("polygons")))):
        errors.append(RulesCheckError(RulesCheckLevel.WARN, "Package has no courtyard polygon"))
    return RulesCheckResult(errors=tuple(errors))


def _values(collection: Any) -> list[Any]:
    if not collection:
        return []
    if isinstance(collection, Mapping):
        return list(collection.values())
    if isinstance(collection, (list, tuple)):
        return list(collection)
    return [collection]


def _mappings(values: list[Any]) -> list[Mapping[str, Any]]:
    return [value for value in values if isinstance(value, Mapping)]
