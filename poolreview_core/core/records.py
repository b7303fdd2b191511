from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


NIL_UUID = "00000000-0000-0000-0000-000000000000"


class RecordType(Enum):
    PART = "part"
    ENTITY = "entity"
    UNIT = "unit"
    SYMBOL = "symbol"
    PACKAGE = "package"
    PADSTACK = "padstack"
    MODEL = "model_3d"

    @classmethod
    def from_tag(cls, tag: str) -> "RecordType":
        try:
            return cls(tag)
        except ValueError as exc:
            raise ValueError(f"unknown record type tag: {tag}") from exc

    @property
    def info(self) -> "RecordTypeInfo":
        return RECORD_TYPE_INFO[self]


@dataclass(frozen=True)
class RecordTypeInfo:
    display_name: str
    type_order: int
    image_prefix: str | None = None


RECORD_TYPE_INFO: Mapping[RecordType, RecordTypeInfo] = MappingProxyType(
    {
        RecordType.PART: RecordTypeInfo(display_name="Part", type_order=0),
        RecordType.ENTITY: RecordTypeInfo(display_name="Entity", type_order=1),
        RecordType.UNIT: RecordTypeInfo(display_name="Unit", type_order=2),
        RecordType.SYMBOL: RecordTypeInfo(display_name="Symbol", type_order=3, image_prefix="sym"),
        RecordType.PACKAGE: RecordTypeInfo(display_name="Package", type_order=4, image_prefix="pkg"),
        RecordType.MODEL: RecordTypeInfo(display_name="3D Model", type_order=5),
        RecordType.PADSTACK: RecordTypeInfo(display_name="Padstack", type_order=6),
    }
)


@dataclass(frozen=True)
class RecordRef:
    type: RecordType
    uuid: str

    def sort_key(self) -> tuple[str, str]:
        return (self.type.value, self.uuid)

    def __str__(self) -> str:
        return f"{self.type.value}:{self.uuid}"


@dataclass(frozen=True)
class Record:
    ref: RecordRef
    name: str
    filename: str = ""

    @property
    def type(self) -> RecordType:
        return self.ref.type

    @property
    def uuid(self) -> str:
        return self.ref.uuid


@dataclass(frozen=True)
class DependencyEdge:
    source: RecordRef
    target: RecordRef


class PartAttribute(Enum):
    MPN = "mpn"
    VALUE = "value"
    MANUFACTURER = "manufacturer"
    DATASHEET = "datasheet"
    DESCRIPTION = "description"


PART_ATTRIBUTE_LABELS: Mapping[PartAttribute, str] = MappingProxyType(
    {
        PartAttribute.MPN: "MPN",
        PartAttribute.VALUE: "Value",
        PartAttribute.MANUFACTURER: "Manufacturer",
        PartAttribute.DATASHEET: "Datasheet",
        PartAttribute.DESCRIPTION: "Description",
    }
)


@dataclass(frozen=True)
class PadMapItem:
    gate: str
    pin: str


@dataclass(frozen=True)
class Part:
    """A part row; attribute values of `None` are not set on this part and come from its base."""

    uuid: str
    base: str = NIL_UUID
    attributes: Mapping[PartAttribute, str | None] = field(default_factory=dict)
    entity: str | None = None
    package: str | None = None
    tags: tuple[str, ...] = ()
    inherit_tags: bool = False
    pad_map: Mapping[str, PadMapItem] = field(default_factory=dict)
    filename: str = ""

    @property
    def ref(self) -> RecordRef:
        return RecordRef(RecordType.PART, self.uuid)

    @property
    def is_derived(self) -> bool:
        return bool(self.base) and self.base != NIL_UUID

    def own_attribute(self, attr: PartAttribute) -> str | None:
        return self.attributes.get(attr)


class PinDirection(Enum):
    INPUT = "input"
    OUTPUT = "output"
    BIDIRECTIONAL = "bidirectional"
    OPEN_COLLECTOR = "open_collector"
    POWER_INPUT = "power_input"
    POWER_OUTPUT = "power_output"
    PASSIVE = "passive"
    NOT_CONNECTED = "not_connected"


PIN_DIRECTION_NAMES: Mapping[PinDirection, str] = MappingProxyType(
    {
        PinDirection.INPUT: "Input",
        PinDirection.OUTPUT: "Output",
        PinDirection.BIDIRECTIONAL: "Bidirectional",
        PinDirection.OPEN_COLLECTOR: "Open Collector",
        PinDirection.POWER_INPUT: "Power Input",
        PinDirection.POWER_OUTPUT: "Power Output",
        PinDirection.PASSIVE: "Passive",
        PinDirection.NOT_CONNECTED: "Not connected",
    }
)


def pin_direction_name(tag: str) -> str:
    try:
        return PIN_DIRECTION_NAMES[PinDirection(tag)]
    except ValueError:
        return f"Unknown ({tag})"


class DependencyGraph:
    """Read-only record/edge relation for one review run."""

    def __init__(
        self,
        records: Iterable[Record],
        edges: Iterable[DependencyEdge] = (),
        *,
        parts: Iterable[Part] = (),
        symbols_by_unit: Mapping[str, Iterable[str]] | None = None,
        models_by_package: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self._records: dict[RecordRef, Record] = {record.ref: record for record in records}
        adjacency: dict[RecordRef, list[RecordRef]] = {}
        for edge in edges:
            targets = adjacency.setdefault(edge.source, [])
            if edge.target not in targets:
                targets.append(edge.target)
        self._adjacency = {ref: tuple(sorted(targets, key=RecordRef.sort_key)) for ref, targets in adjacency.items()}
        self._parts: dict[str, Part] = {part.uuid: part for part in parts}
        self._symbols_by_unit = {
            unit: tuple(sorted(symbols)) for unit, symbols in (symbols_by_unit or {}).items()
        }
        self._models_by_package = {
            package: tuple(sorted(models)) for package, models in (models_by_package or {}).items()
        }

    @property
    def parts(self) -> Mapping[str, Part]:
        return MappingProxyType(self._parts)

    def record(self, ref: RecordRef) -> Record | None:
        return self._records.get(ref)

    def has_record(self, ref: RecordRef) -> bool:
        return ref in self._records

    def name_of(self, ref: RecordRef) -> str:
        record = self.record(ref)
        return record.name if record is not None else ""

    def dependencies_of(self, ref: RecordRef) -> tuple[RecordRef, ...]:
        return self._adjacency.get(ref, ())

    def attachments_of(self, ref: RecordRef) -> tuple[RecordRef, ...]:
        if ref.type == RecordType.UNIT:
            return tuple(RecordRef(RecordType.SYMBOL, uu) for uu in self._symbols_by_unit.get(ref.uuid, ()))
        if ref.type == RecordType.PACKAGE:
            return tuple(RecordRef(RecordType.MODEL, uu) for uu in self._models_by_package.get(ref.uuid, ()))
        return ()
