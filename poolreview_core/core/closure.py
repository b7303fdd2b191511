from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
from typing import Callable, Iterable, Mapping

from .changes import ChangedItem, ChangeResolution
from .natural_order import natural_key
from .records import DependencyGraph, Part, RecordRef, RecordType

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClosureNode:
    ref: RecordRef
    name: str
    depth: int
    type_order: int
    in_change: bool
    root: RecordRef

    def sort_key(self) -> tuple:
        return (self.root.uuid, self.type_order, self.depth, natural_key(self.name), self.ref.uuid)


@dataclass(frozen=True)
class ClosureResult:
    nodes: tuple[ClosureNode, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def refs(self) -> frozenset[RecordRef]:
        return frozenset(node.ref for node in self.nodes)

    def nodes_for_root(self, root: RecordRef) -> tuple[ClosureNode, ...]:
        return tuple(node for node in self.nodes if node.root == root)


def select_roots(changed: Iterable[RecordRef], parts: Mapping[str, Part]) -> tuple[RecordRef, ...]:
    """Changed parts whose base is nil or not itself part of the change."""
    changed_parts: list[RecordRef] = []
    for ref in changed:
        if ref.type == RecordType.PART and ref not in changed_parts:
            changed_parts.append(ref)
    changed_uuids = {ref.uuid for ref in changed_parts}

    roots: list[RecordRef] = []
    for ref in changed_parts:
        part = parts.get(ref.uuid)
        if part is None or not part.is_derived or part.base not in changed_uuids:
            roots.append(ref)
    return tuple(roots)


def compute_closure(
    graph: DependencyGraph,
    roots: Iterable[RecordRef],
    changed: Iterable[RecordRef],
) -> ClosureResult:
    changed_set = frozenset(changed)
    nodes: list[ClosureNode] = []
    warnings: list[str] = []
    reported: set[tuple[RecordRef, RecordRef]] = set()

    def _missing(source: RecordRef, target: RecordRef) -> None:
        if (source, target) in reported:
            return
        reported.add((source, target))
        message = (
            f"{source.type.info.display_name} {graph.name_of(source) or source.uuid} references missing "
            f"{target.type.info.display_name.lower()} {target.uuid}"
        )
        LOGGER.warning("%s", message)
        warnings.append(message)

    for root in dict.fromkeys(roots):
        depths = _walk(graph, root, _missing)
        for ref, depth in depths.items():
            nodes.append(
                ClosureNode(
                    ref=ref,
                    name=graph.name_of(ref),
                    depth=depth,
                    type_order=ref.type.info.type_order,
                    in_change=ref in changed_set,
                    root=root,
                )
            )

    nodes.sort(key=ClosureNode.sort_key)
    return ClosureResult(nodes=tuple(nodes), warnings=tuple(warnings))


def _walk(
    graph: DependencyGraph,
    root: RecordRef,
    on_missing: Callable[[RecordRef, RecordRef], None],
) -> dict[RecordRef, int]:
    depths: dict[RecordRef, int] = {root: 0}
    queue: deque[RecordRef] = deque([root])
    while queue:
        ref = queue.popleft()
        depth = depths[ref]
        for dep in graph.dependencies_of(ref):
            if dep in depths:
                continue
            if not graph.has_record(dep):
                on_missing(ref, dep)
                continue
            depths[dep] = depth + 1
            queue.append(dep)

    # symbols hang off units and models off packages, one level below their owner
    for ref, depth in list(depths.items()):
        for attached in graph.attachments_of(ref):
            if attached in depths:
                continue
            if not graph.has_record(attached):
                on_missing(ref, attached)
                continue
            depths[attached] = depth + 1
    return depths


def find_orphans(
    resolution: ChangeResolution,
    closure: ClosureResult,
    derived_refs: Iterable[RecordRef] = (),
) -> tuple[ChangedItem, ...]:
    covered = set(closure.refs)
    covered.update(derived_refs)
    out: list[ChangedItem] = []
    seen: set[RecordRef] = set()
    for item in resolution.items:
        if item.ref in covered or item.ref in seen:
            continue
        seen.add(item.ref)
        out.append(item)
    return tuple(out)
