from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Iterable

from .records import RecordRef, RecordType

LOGGER = logging.getLogger(__name__)


class ChangeKind(Enum):
    ADDED = "added"
    MODIFIED = "modified"
    UNKNOWN = "unknown"


# libgit2 git_delta_t values
DELTA_ADDED = 1
DELTA_MODIFIED = 3


@dataclass(frozen=True)
class ChangeEntry:
    path: str
    kind: ChangeKind
    code: int = 0

    @classmethod
    def from_code(cls, path: str, code: int) -> "ChangeEntry":
        if code == DELTA_ADDED:
            return cls(path=path, kind=ChangeKind.ADDED, code=code)
        if code == DELTA_MODIFIED:
            return cls(path=path, kind=ChangeKind.MODIFIED, code=code)
        return cls(path=path, kind=ChangeKind.UNKNOWN, code=code)

    @property
    def label(self) -> str:
        if self.kind == ChangeKind.ADDED:
            return "New"
        if self.kind == ChangeKind.MODIFIED:
            return "Modified"
        return f"Unknown ({self.code})"


@dataclass(frozen=True)
class PathRow:
    ref: RecordRef
    name: str
    filename: str


@dataclass(frozen=True)
class ChangedItem:
    ref: RecordRef
    name: str
    filename: str
    change: ChangeEntry

    @property
    def type(self) -> RecordType:
        return self.ref.type


@dataclass(frozen=True)
class ChangeResolution:
    items: tuple[ChangedItem, ...] = ()
    non_items: tuple[str, ...] = ()

    @property
    def changed_refs(self) -> frozenset[RecordRef]:
        return frozenset(item.ref for item in self.items)

    def items_of_type(self, record_type: RecordType) -> tuple[ChangedItem, ...]:
        seen: set[RecordRef] = set()
        out: list[ChangedItem] = []
        for item in self.items:
            if item.type != record_type or item.ref in seen:
                continue
            seen.add(item.ref)
            out.append(item)
        return tuple(out)


def normalize_path(path: str) -> str:
    out = path.replace("\\", "/")
    while out.startswith("./"):
        out = out[2:]
    return out


def resolve_changes(entries: Iterable[ChangeEntry], path_rows: Iterable[PathRow]) -> ChangeResolution:
    by_path: dict[str, list[PathRow]] = {}
    for row in path_rows:
        by_path.setdefault(normalize_path(row.filename), []).append(row)

    items: list[ChangedItem] = []
    non_items: list[str] = []
    seen_paths: set[str] = set()
    for entry in entries:
        path = normalize_path(entry.path)
        if path in seen_paths:
            continue
        seen_paths.add(path)
        rows = by_path.get(path)
        if not rows:
            non_items.append(entry.path)
            continue
        if len(rows) > 1:
            LOGGER.warning("path %s matches %d records; using the first by type and uuid", path, len(rows))
        row = min(rows, key=lambda r: r.ref.sort_key())
        items.append(ChangedItem(ref=row.ref, name=row.name, filename=row.filename, change=entry))
    return ChangeResolution(items=tuple(items), non_items=tuple(non_items))
