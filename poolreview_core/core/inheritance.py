from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .errors import CyclicDerivation
from .natural_order import natural_key, natural_sorted
from .records import NIL_UUID, PadMapItem, Part, PartAttribute, RecordRef, RecordType


@dataclass(frozen=True)
class ResolvedAttribute:
    value: str
    inherited: bool
    source: str | None = None


@dataclass(frozen=True)
class ResolvedPart:
    part: Part
    chain: tuple[Part, ...]
    attributes: Mapping[PartAttribute, ResolvedAttribute]
    tags: tuple[str, ...] = ()
    tags_inherited: bool = False
    entity: str | None = None
    package: str | None = None
    pad_map: Mapping[str, PadMapItem] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    @property
    def ref(self) -> RecordRef:
        return self.part.ref

    @property
    def base(self) -> Part | None:
        if len(self.chain) > 1:
            return self.chain[1]
        return None

    @property
    def mpn(self) -> str:
        return self.value(PartAttribute.MPN)

    def value(self, attr: PartAttribute) -> str:
        return self.attributes[attr].value

    def is_inherited(self, attr: PartAttribute) -> bool:
        return self.attributes[attr].inherited


@dataclass(frozen=True)
class DerivedNode:
    ref: RecordRef
    name: str
    depth: int
    in_change: bool
    root: RecordRef


def derivation_chain(part_uuid: str, parts: Mapping[str, Part]) -> tuple[Part, ...]:
    """Part followed by its bases up to the first one without a base.

    A base that is missing from `parts` ends the chain early; `resolve_part`
    reports that as a warning. A repeated part raises `CyclicDerivation`.
    """
    if part_uuid not in parts:
        raise KeyError(f"unknown part: {part_uuid}")
    chain: list[Part] = []
    visited: set[str] = set()
    uuid = part_uuid
    while uuid and uuid != NIL_UUID:
        part = parts.get(uuid)
        if part is None:
            break
        if uuid in visited:
            raise CyclicDerivation(part.ref, tuple(p.ref for p in chain))
        visited.add(uuid)
        chain.append(part)
        uuid = part.base
    return tuple(chain)


def resolve_part(part_uuid: str, parts: Mapping[str, Part]) -> ResolvedPart:
    chain = derivation_chain(part_uuid, parts)
    part = chain[0]
    warnings: list[str] = []
    last = chain[-1]
    if last.is_derived:
        warnings.append(f"base part {last.base} of {last.uuid} is missing")

    attributes: dict[PartAttribute, ResolvedAttribute] = {}
    for attr in PartAttribute:
        attributes[attr] = _resolve_attribute(chain, attr)

    tags = _resolve_tags(chain)
    return ResolvedPart(
        part=part,
        chain=chain,
        attributes=attributes,
        tags=tags,
        tags_inherited=part.inherit_tags and part.is_derived,
        entity=next((p.entity for p in chain if p.entity), None),
        package=next((p.package for p in chain if p.package), None),
        pad_map=next((p.pad_map for p in chain if p.pad_map), {}),
        warnings=tuple(warnings),
    )


def _resolve_attribute(chain: tuple[Part, ...], attr: PartAttribute) -> ResolvedAttribute:
    for index, link in enumerate(chain):
        value = link.own_attribute(attr)
        if value is not None:
            return ResolvedAttribute(value=value, inherited=index > 0, source=link.uuid)
    return ResolvedAttribute(value="", inherited=chain[0].is_derived, source=None)


def _resolve_tags(chain: tuple[Part, ...]) -> tuple[str, ...]:
    tags: set[str] = set()
    for link in chain:
        tags.update(link.tags)
        if not link.inherit_tags:
            break
    return tuple(natural_sorted(tags))


def display_mpn(part_uuid: str, parts: Mapping[str, Part]) -> str:
    try:
        return resolve_part(part_uuid, parts).mpn
    except CyclicDerivation:
        part = parts[part_uuid]
        return part.own_attribute(PartAttribute.MPN) or part_uuid


def derived_parts_tree(
    roots: Iterable[RecordRef],
    parts: Mapping[str, Part],
    changed: Iterable[RecordRef],
) -> tuple[DerivedNode, ...]:
    changed_set = frozenset(changed)
    children: dict[str, list[str]] = {}
    for part in parts.values():
        if part.is_derived:
            children.setdefault(part.base, []).append(part.uuid)
    names = {uuid: display_mpn(uuid, parts) for uuid in parts}
    for base, uuids in children.items():
        uuids.sort(key=lambda uu: (natural_key(names[uu]), uu))

    nodes: list[DerivedNode] = []
    for root in dict.fromkeys(roots):
        if root.type != RecordType.PART or root.uuid not in parts:
            continue
        visited: set[str] = set()
        stack: list[tuple[str, int]] = [(root.uuid, 0)]
        while stack:
            uuid, depth = stack.pop()
            if uuid in visited:
                continue
            visited.add(uuid)
            ref = RecordRef(RecordType.PART, uuid)
            nodes.append(
                DerivedNode(ref=ref, name=names[uuid], depth=depth, in_change=ref in changed_set, root=root)
            )
            for child in reversed(children.get(uuid, ())):
                stack.append((child, depth + 1))
    return tuple(nodes)
