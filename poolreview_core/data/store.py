from __future__ import annotations

import json
import logging
from pathlib import Path
import sqlite3
from typing import Any, Iterable

from poolreview_core.core.changes import PathRow
from poolreview_core.core.errors import DocumentError, StoreError
from poolreview_core.core.natural_order import natural_sorted
from poolreview_core.core.records import (
    DependencyEdge,
    DependencyGraph,
    PadMapItem,
    Part,
    PartAttribute,
    Record,
    RecordRef,
    RecordType,
)

from .pool_update import POOL_DB_NAME

LOGGER = logging.getLogger(__name__)


class PoolStore:
    """Read-only view of one pool: the `pool.db` index plus the JSON item files."""

    def __init__(self, pool_root: str | Path) -> None:
        self.root = Path(pool_root)
        db_path = self.root / POOL_DB_NAME
        if not db_path.exists():
            raise StoreError(f"pool database not found: {db_path}")
        try:
            self._conn: sqlite3.Connection | None = sqlite3.connect(db_path.resolve().as_uri() + "?mode=ro", uri=True)
            self._conn.execute("SELECT COUNT(*) FROM items").fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open pool database {db_path}: {exc}") from exc
        self._documents: dict[RecordRef, dict[str, Any]] = {}

    def __enter__(self) -> "PoolStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None

    def path_rows(self) -> list[PathRow]:
        rows = [
            PathRow(ref=RecordRef(RecordType.from_tag(row[0]), str(row[1])), name=str(row[2]), filename=str(row[3]))
            for row in self._query("SELECT type, uuid, name, filename FROM items")
        ]
        rows.extend(
            PathRow(ref=RecordRef(RecordType.MODEL, str(row[0])), name=str(row[1]), filename=str(row[1]))
            for row in self._query("SELECT DISTINCT uuid, model_filename FROM models")
        )
        return rows

    def load_graph(self) -> DependencyGraph:
        records = [
            Record(ref=row.ref, name=row.name, filename=row.filename) for row in self.path_rows()
        ]
        edges = [
            DependencyEdge(
                source=RecordRef(RecordType.from_tag(row[0]), str(row[1])),
                target=RecordRef(RecordType.from_tag(row[2]), str(row[3])),
            )
            for row in self._query("SELECT type, uuid, dep_type, dep_uuid FROM dependencies")
        ]
        symbols_by_unit: dict[str, list[str]] = {}
        for unit, symbol in self._query("SELECT unit, uuid FROM symbols"):
            symbols_by_unit.setdefault(str(unit), []).append(str(symbol))
        models_by_package: dict[str, list[str]] = {}
        for package, model in self._query("SELECT package_uuid, uuid FROM models"):
            models_by_package.setdefault(str(package), []).append(str(model))
        return DependencyGraph(
            records,
            edges,
            parts=self.parts(),
            symbols_by_unit=symbols_by_unit,
            models_by_package=models_by_package,
        )

    def parts(self) -> list[Part]:
        rows = self._query(
            "SELECT uuid, base, mpn, value, manufacturer, datasheet, description, entity, package, "
            "inherit_tags, pad_map, filename FROM parts"
        )
        out: list[Part] = []
        for row in rows:
            uuid = str(row[0])
            tags = tuple(
                str(tag[0])
                for tag in self._query("SELECT tag FROM tags WHERE type = 'part' AND uuid = ?", (uuid,))
            )
            pad_map = {
                pad: PadMapItem(gate=str(item["gate"]), pin=str(item["pin"]))
                for pad, item in json.loads(row[10]).items()
            }
            out.append(
                Part(
                    uuid=uuid,
                    base=str(row[1]),
                    attributes={
                        PartAttribute.MPN: row[2],
                        PartAttribute.VALUE: row[3],
                        PartAttribute.MANUFACTURER: row[4],
                        PartAttribute.DATASHEET: row[5],
                        PartAttribute.DESCRIPTION: row[6],
                    },
                    entity=row[7],
                    package=row[8],
                    tags=tags,
                    inherit_tags=bool(row[9]),
                    pad_map=pad_map,
                    filename=str(row[11]),
                )
            )
        return out

    def count_manufacturer(self, manufacturer: str) -> int:
        row = self._query(
            "SELECT COUNT(*) FROM parts WHERE effective_manufacturer = ?", (manufacturer,)
        )[0]
        return int(row[0])

    def tags(self, ref: RecordRef) -> tuple[str, ...]:
        rows = self._query("SELECT tag FROM tags WHERE type = ? AND uuid = ?", (ref.type.value, ref.uuid))
        return tuple(natural_sorted({str(row[0]) for row in rows}))

    def symbols_of_unit(self, unit_uuid: str) -> list[str]:
        rows = self._query("SELECT uuid FROM symbols WHERE unit = ? ORDER BY name, uuid", (unit_uuid,))
        return [str(row[0]) for row in rows]

    def filename_of(self, ref: RecordRef) -> str | None:
        rows = self._query("SELECT filename FROM items WHERE type = ? AND uuid = ?", (ref.type.value, ref.uuid))
        if not rows:
            return None
        return str(rows[0][0])

    def load_document(self, ref: RecordRef) -> dict[str, Any]:
        cached = self._documents.get(ref)
        if cached is not None:
            return cached
        filename = self.filename_of(ref)
        if filename is None:
            raise DocumentError(f"{ref.type.info.display_name.lower()} {ref.uuid} is not in the pool")
        path = self.root / filename
        LOGGER.debug("loading %s from %s", ref, path)
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise DocumentError(f"cannot load {filename}: {exc}") from exc
        if not isinstance(doc, dict):
            raise DocumentError(f"{filename} is not a JSON object")
        self._documents[ref] = doc
        return doc

    def padstacks(self, uuids: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Padstack documents by uuid; uuids that are not in the pool are left out."""
        out: dict[str, dict[str, Any]] = {}
        for uuid in uuids:
            ref = RecordRef(RecordType.PADSTACK, uuid)
            if uuid in out or self.filename_of(ref) is None:
                continue
            out[uuid] = self.load_document(ref)
        return out

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        if self._conn is None:
            raise StoreError("pool store is closed")
        try:
            return list(self._conn.execute(sql, params))
        except sqlite3.Error as exc:
            raise StoreError(f"pool query failed: {exc}") from exc
