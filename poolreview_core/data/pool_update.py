from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import logging
from pathlib import Path
import sqlite3
from typing import Any, Callable

from poolreview_core.core.errors import CyclicDerivation
from poolreview_core.core.inheritance import resolve_part
from poolreview_core.core.records import NIL_UUID, PadMapItem, Part, PartAttribute, RecordType

LOGGER = logging.getLogger(__name__)

POOL_DB_NAME = "pool.db"

ITEM_DIRECTORIES: tuple[tuple[str, RecordType], ...] = (
    ("parts", RecordType.PART),
    ("entities", RecordType.ENTITY),
    ("units", RecordType.UNIT),
    ("symbols", RecordType.SYMBOL),
    ("packages", RecordType.PACKAGE),
    ("padstacks", RecordType.PADSTACK),
)

_PART_ATTRIBUTE_KEYS: tuple[tuple[PartAttribute, str], ...] = (
    (PartAttribute.MPN, "MPN"),
    (PartAttribute.VALUE, "value"),
    (PartAttribute.MANUFACTURER, "manufacturer"),
    (PartAttribute.DATASHEET, "datasheet"),
    (PartAttribute.DESCRIPTION, "description"),
)

_NESTED_COLLECTIONS: dict[RecordType, tuple[str, ...]] = {
    RecordType.PART: ("pad_map",),
    RecordType.ENTITY: ("gates",),
    RecordType.UNIT: ("pins",),
    RecordType.PACKAGE: ("pads", "models"),
}

_SCHEMA = """
CREATE TABLE items (type TEXT NOT NULL, uuid TEXT NOT NULL, name TEXT NOT NULL, filename TEXT NOT NULL,
    PRIMARY KEY (type, uuid));
CREATE TABLE parts (uuid TEXT PRIMARY KEY, base TEXT NOT NULL, mpn TEXT, value TEXT, manufacturer TEXT,
    datasheet TEXT, description TEXT, entity TEXT, package TEXT, inherit_tags INTEGER NOT NULL,
    pad_map TEXT NOT NULL, effective_manufacturer TEXT NOT NULL, filename TEXT NOT NULL);
CREATE TABLE symbols (uuid TEXT PRIMARY KEY, unit TEXT NOT NULL, name TEXT NOT NULL, filename TEXT NOT NULL);
CREATE TABLE models (uuid TEXT NOT NULL, package_uuid TEXT NOT NULL, model_filename TEXT NOT NULL);
CREATE TABLE dependencies (type TEXT NOT NULL, uuid TEXT NOT NULL, dep_type TEXT NOT NULL, dep_uuid TEXT NOT NULL);
CREATE TABLE tags (type TEXT NOT NULL, uuid TEXT NOT NULL, tag TEXT NOT NULL);
"""


class PoolUpdateStatus(Enum):
    INFO = "info"
    FILE_ERROR = "file_error"
    DONE = "done"


@dataclass(frozen=True)
class PoolUpdateError:
    filename: str
    detail: str


@dataclass(frozen=True)
class PoolUpdateResult:
    items: int
    errors: tuple[PoolUpdateError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


def update_pool(
    pool_root: str | Path,
    *,
    on_status: Callable[[PoolUpdateStatus, str, str], None] | None = None,
) -> PoolUpdateResult:
    """Rebuild `pool.db` from the JSON item files below `pool_root`."""
    root = Path(pool_root)
    if not root.is_dir():
        raise FileNotFoundError(f"pool directory not found: {root}")

    def _status(status: PoolUpdateStatus, filename: str, detail: str = "") -> None:
        if on_status is not None:
            on_status(status, filename, detail)

    errors: list[PoolUpdateError] = []
    parts: dict[str, Part] = {}
    documents: list[tuple[RecordType, str, dict[str, Any]]] = []
    seen: dict[tuple[RecordType, str], str] = {}
    for dirname, record_type in ITEM_DIRECTORIES:
        base_dir = root / dirname
        if not base_dir.is_dir():
            continue
        for path in sorted(base_dir.rglob("*.json")):
            rel = path.relative_to(root).as_posix()
            try:
                doc = json.loads(path.read_text(encoding="utf-8"))
                _validate_document(doc, record_type)
                key = (record_type, doc["uuid"])
                if key in seen:
                    raise ValueError(f"duplicate {record_type.value} uuid {key[1]}, already defined in {seen[key]}")
                if record_type == RecordType.PART:
                    part = part_from_document(doc, filename=rel)
                    parts[part.uuid] = part
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
                errors.append(PoolUpdateError(filename=rel, detail=str(exc)))
                _status(PoolUpdateStatus.FILE_ERROR, rel, str(exc))
                continue
            seen[key] = rel
            documents.append((record_type, rel, doc))
            _status(PoolUpdateStatus.INFO, rel)

    tmp_path = root / (POOL_DB_NAME + ".tmp")
    if tmp_path.exists():
        tmp_path.unlink()
    conn = sqlite3.connect(tmp_path)
    try:
        conn.executescript(_SCHEMA)
        for record_type, rel, doc in documents:
            if record_type == RecordType.PART:
                part = parts[str(doc["uuid"])]
                name, effective_mfr, detail = _part_names(part, parts)
                if detail:
                    LOGGER.warning("%s: %s", rel, detail)
                _insert_part(conn, part, effective_mfr)
            else:
                name = str(doc.get("name", ""))
            _insert_item(conn, record_type, doc, name, rel)
        conn.commit()
    finally:
        conn.close()
    tmp_path.replace(root / POOL_DB_NAME)
    _status(PoolUpdateStatus.DONE, "", f"{len(documents)} items")
    LOGGER.debug("pool update indexed %d items with %d errors", len(documents), len(errors))
    return PoolUpdateResult(items=len(documents), errors=tuple(errors))


def part_from_document(doc: dict[str, Any], *, filename: str = "") -> Part:
    attributes: dict[PartAttribute, str | None] = {}
    for attr, key in _PART_ATTRIBUTE_KEYS:
        value = doc.get(key)
        attributes[attr] = None if value is None else str(value)
    pad_map = {
        str(pad): PadMapItem(gate=str(item["gate"]), pin=str(item["pin"]))
        for pad, item in dict(doc.get("pad_map", {})).items()
    }
    return Part(
        uuid=str(doc["uuid"]),
        base=str(doc.get("base") or NIL_UUID),
        attributes=attributes,
        entity=_optional_str(doc.get("entity")),
        package=_optional_str(doc.get("package")),
        tags=tuple(str(tag) for tag in doc.get("tags", ())),
        inherit_tags=bool(doc.get("inherit_tags", False)),
        pad_map=pad_map,
        filename=filename,
    )


def _validate_document(doc: Any, record_type: RecordType) -> None:
    if not isinstance(doc, dict):
        raise ValueError("document must be a JSON object")
    if doc.get("type") != record_type.value:
        raise ValueError(f"expected type `{record_type.value}`, got `{doc.get('type')}`")
    if not isinstance(doc.get("uuid"), str) or not doc["uuid"]:
        raise ValueError("document is missing its uuid")
    if record_type == RecordType.SYMBOL and not isinstance(doc.get("unit"), str):
        raise ValueError("symbol is missing its unit")
    for key in _NESTED_COLLECTIONS.get(record_type, ()):
        collection = doc.get(key, {})
        if not isinstance(collection, dict):
            raise ValueError(f"`{key}` must be an object keyed by uuid")
        for item_uuid, item in collection.items():
            if not isinstance(item, dict):
                raise ValueError(f"`{key}.{item_uuid}` must be an object")


def _part_names(part: Part, parts: dict[str, Part]) -> tuple[str, str, str]:
    try:
        resolved = resolve_part(part.uuid, parts)
    except CyclicDerivation as exc:
        own_mpn = part.own_attribute(PartAttribute.MPN) or ""
        own_mfr = part.own_attribute(PartAttribute.MANUFACTURER) or ""
        return own_mpn, own_mfr, str(exc)
    detail = "; ".join(resolved.warnings)
    return resolved.mpn, resolved.value(PartAttribute.MANUFACTURER), detail


def _insert_part(conn: sqlite3.Connection, part: Part, effective_manufacturer: str) -> None:
    pad_map = {pad: {"gate": item.gate, "pin": item.pin} for pad, item in part.pad_map.items()}
    conn.execute(
        "INSERT INTO parts VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            part.uuid,
            part.base,
            part.own_attribute(PartAttribute.MPN),
            part.own_attribute(PartAttribute.VALUE),
            part.own_attribute(PartAttribute.MANUFACTURER),
            part.own_attribute(PartAttribute.DATASHEET),
            part.own_attribute(PartAttribute.DESCRIPTION),
            part.entity,
            part.package,
            int(part.inherit_tags),
            json.dumps(pad_map, sort_keys=True),
            effective_manufacturer,
            part.filename,
        ),
    )
    if part.is_derived:
        _insert_dependency(conn, RecordType.PART, part.uuid, RecordType.PART, part.base)
    else:
        if part.entity:
            _insert_dependency(conn, RecordType.PART, part.uuid, RecordType.ENTITY, part.entity)
        if part.package:
            _insert_dependency(conn, RecordType.PART, part.uuid, RecordType.PACKAGE, part.package)


def _insert_item(
    conn: sqlite3.Connection,
    record_type: RecordType,
    doc: dict[str, Any],
    name: str,
    filename: str,
) -> None:
    uuid = str(doc["uuid"])
    conn.execute(
        "INSERT OR REPLACE INTO items (type, uuid, name, filename) VALUES (?, ?, ?, ?)",
        (record_type.value, uuid, name, filename),
    )
    for tag in doc.get("tags", ()):
        conn.execute("INSERT INTO tags (type, uuid, tag) VALUES (?, ?, ?)", (record_type.value, uuid, str(tag)))

    if record_type == RecordType.ENTITY:
        for gate in dict(doc.get("gates", {})).values():
            unit = _optional_str(gate.get("unit"))
            if unit:
                _insert_dependency(conn, RecordType.ENTITY, uuid, RecordType.UNIT, unit)
    elif record_type == RecordType.SYMBOL:
        conn.execute(
            "INSERT OR REPLACE INTO symbols (uuid, unit, name, filename) VALUES (?, ?, ?, ?)",
            (uuid, str(doc["unit"]), name, filename),
        )
    elif record_type == RecordType.PACKAGE:
        for pad in dict(doc.get("pads", {})).values():
            padstack = _optional_str(pad.get("padstack"))
            if padstack:
                _insert_dependency(conn, RecordType.PACKAGE, uuid, RecordType.PADSTACK, padstack)
        for model_uuid, model in dict(doc.get("models", {})).items():
            conn.execute(
                "INSERT INTO models (uuid, package_uuid, model_filename) VALUES (?, ?, ?)",
                (str(model_uuid), uuid, str(model.get("filename", ""))),
            )


def _insert_dependency(
    conn: sqlite3.Connection,
    record_type: RecordType,
    uuid: str,
    dep_type: RecordType,
    dep_uuid: str,
) -> None:
    conn.execute(
        "INSERT INTO dependencies (type, uuid, dep_type, dep_uuid) VALUES (?, ?, ?, ?)",
        (record_type.value, uuid, dep_type.value, dep_uuid),
    )


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
