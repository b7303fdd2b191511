from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from poolreview_core.core import (
    PART_ATTRIBUTE_LABELS,
    ChangeEntry,
    ChangedItem,
    ChangeResolution,
    ClosureResult,
    CyclicDerivation,
    DependencyGraph,
    DerivedNode,
    DocumentError,
    PartAttribute,
    RecordRef,
    RecordType,
    RenderError,
    ResolvedPart,
    ReviewConfig,
    compute_closure,
    derived_parts_tree,
    find_orphans,
    natural_sorted,
    pin_direction_name,
    resolve_changes,
    resolve_part,
    select_roots,
)
from poolreview_core.core.inheritance import display_mpn
from poolreview_core.data import PoolStore

from .checks import WHITESPACE_WARNING, RulesCheckResult, check_datasheet, check_package, needs_trim
from .previews import RenderedImage, render_package_image, render_symbol_images

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttributeRow:
    label: str
    value: str
    inherited: bool = False
    notes: tuple[str, ...] = ()


@dataclass(frozen=True)
class PadRow:
    pad: str
    gate: str
    pin: str


@dataclass(frozen=True)
class PartDetails:
    ref: RecordRef
    mpn: str
    base_mpn: str | None = None
    attributes: tuple[AttributeRow, ...] = ()
    tags: tuple[str, ...] = ()
    show_pads: bool = False
    pads: tuple[PadRow, ...] = ()
    unmapped_pins: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class PartsTableRow:
    node: DerivedNode
    resolved: ResolvedPart | None
    tags: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class GateRow:
    name: str
    suffix: str
    swap_group: str
    unit: str


@dataclass(frozen=True)
class EntityDetails:
    ref: RecordRef
    name: str
    attributes: tuple[AttributeRow, ...] = ()
    gates: tuple[GateRow, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class PinRow:
    name: str
    direction: str
    alternates: tuple[str, ...] = ()


@dataclass(frozen=True)
class SymbolPreview:
    ref: RecordRef
    name: str
    images: tuple[RenderedImage, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class UnitDetails:
    ref: RecordRef
    name: str
    attributes: tuple[AttributeRow, ...] = ()
    pins: tuple[PinRow, ...] = ()
    symbols: tuple[SymbolPreview, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class PackageDetails:
    ref: RecordRef
    name: str
    attributes: tuple[AttributeRow, ...] = ()
    rules: RulesCheckResult | None = None
    image: RenderedImage | None = None
    warnings: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class RootPreviews:
    """Package and symbol images of everything one root part pulls in."""

    root: RecordRef
    images: tuple[RenderedImage, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReviewModel:
    resolution: ChangeResolution
    roots: tuple[RecordRef, ...]
    closure: ClosureResult
    derived: tuple[DerivedNode, ...]
    orphans: tuple[ChangedItem, ...]
    has_derived_changes: bool
    parts_table: tuple[PartsTableRow, ...] = ()
    parts: tuple[PartDetails, ...] = ()
    entities: tuple[EntityDetails, ...] = ()
    units: tuple[UnitDetails, ...] = ()
    packages: tuple[PackageDetails, ...] = ()
    previews: tuple[RootPreviews, ...] = ()

    @property
    def images(self) -> tuple[RenderedImage, ...]:
        out: dict[tuple[RecordType, str, str | None], RenderedImage] = {}
        for unit in self.units:
            for symbol in unit.symbols:
                out.update((image.key, image) for image in symbol.images)
        for package in self.packages:
            if package.image is not None:
                out.setdefault(package.image.key, package.image)
        for previews in self.previews:
            out.update((image.key, image) for image in previews.images)
        return tuple(out.values())

    def previews_for(self, root: RecordRef) -> RootPreviews | None:
        for previews in self.previews:
            if previews.root == root:
                return previews
        return None


class ReviewBuilder:
    """Collects everything the report shows for one set of changed files.

    Per-record failures (unreadable documents, cyclic derivations, drawings
    that cannot be expanded) end up on the affected record's details; store
    and repository failures propagate.
    """

    def __init__(self, store: PoolStore, config: ReviewConfig, images_dir: str | Path) -> None:
        self.store = store
        self.config = config
        self.images_dir = Path(images_dir)
        self._graph: DependencyGraph | None = None
        # one render per record, shared by the details and the per-root previews
        self._symbol_previews: dict[str, SymbolPreview] = {}
        self._package_images: dict[str, tuple[RenderedImage | None, str | None]] = {}

    @property
    def graph(self) -> DependencyGraph:
        if self._graph is None:
            self._graph = self.store.load_graph()
        return self._graph

    def build(self, changes: Iterable[ChangeEntry]) -> ReviewModel:
        resolution = resolve_changes(changes, self.store.path_rows())
        parts = self.graph.parts
        changed = resolution.changed_refs
        roots = select_roots((item.ref for item in resolution.items), parts)
        closure = compute_closure(self.graph, roots, changed)
        derived = derived_parts_tree(roots, parts, changed)
        orphans = find_orphans(resolution, closure, (node.ref for node in derived))
        has_derived = any(
            item.ref.uuid in parts and parts[item.ref.uuid].is_derived
            for item in resolution.items_of_type(RecordType.PART)
        ) or any(node.depth > 0 for node in derived)
        LOGGER.debug(
            "%d changed items, %d roots, %d closure nodes, %d derived nodes",
            len(resolution.items),
            len(roots),
            len(closure.nodes),
            len(derived),
        )

        detail_nodes = list({node.ref: node for node in derived}.values())
        return ReviewModel(
            resolution=resolution,
            roots=roots,
            closure=closure,
            derived=derived,
            orphans=orphans,
            has_derived_changes=has_derived,
            parts_table=tuple(self._parts_table_row(node) for node in detail_nodes) if has_derived else (),
            parts=tuple(self.part_details(node.ref.uuid) for node in detail_nodes),
            entities=tuple(self.entity_details(item.ref) for item in resolution.items_of_type(RecordType.ENTITY)),
            units=tuple(self.unit_details(item.ref) for item in resolution.items_of_type(RecordType.UNIT)),
            packages=tuple(
                self.package_details(item.ref) for item in resolution.items_of_type(RecordType.PACKAGE)
            ),
            previews=tuple(self.root_previews(root, closure) for root in roots),
        )

    def part_details(self, part_uuid: str) -> PartDetails:
        parts = self.graph.parts
        part = parts[part_uuid]
        try:
            resolved = resolve_part(part_uuid, parts)
        except CyclicDerivation as exc:
            LOGGER.warning("skipping part %s: %s", part_uuid, exc)
            return PartDetails(
                ref=part.ref,
                mpn=part.own_attribute(PartAttribute.MPN) or part_uuid,
                error=str(exc),
            )

        rows: list[AttributeRow] = []
        for attr in PartAttribute:
            value = resolved.value(attr)
            inherited = resolved.is_inherited(attr)
            notes: list[str] = []
            if needs_trim(value):
                notes.append(WHITESPACE_WARNING)
            if attr == PartAttribute.MANUFACTURER:
                notes.append(f"({self.store.count_manufacturer(value)} other parts)")
            elif attr == PartAttribute.DATASHEET:
                domain = check_datasheet(value, self.config.forbidden_datasheet_domains)
                if domain is not None:
                    notes.append(f"(:warning: forbidden domain {domain}, use primary source)")
            elif attr == PartAttribute.VALUE:
                if value and value == resolved.mpn:
                    notes.append("(:warning: leave value blank if it's identical to MPN)")
            if inherited:
                notes.append("(inherited)")
            rows.append(AttributeRow(PART_ATTRIBUTE_LABELS[attr], value, inherited, tuple(notes)))

        warnings = list(resolved.warnings)
        pads: tuple[PadRow, ...] = ()
        unmapped: tuple[str, ...] = ()
        if not part.is_derived:
            try:
                pads, unmapped = self._pad_table(resolved)
            except DocumentError as exc:
                LOGGER.warning("pad table of part %s: %s", part_uuid, exc)
                warnings.append(str(exc))

        base = resolved.base
        return PartDetails(
            ref=part.ref,
            mpn=resolved.mpn,
            base_mpn=display_mpn(base.uuid, parts) if base is not None else None,
            attributes=tuple(rows),
            tags=resolved.tags,
            show_pads=not part.is_derived,
            pads=pads,
            unmapped_pins=unmapped,
            warnings=tuple(warnings),
        )

    def entity_details(self, ref: RecordRef) -> EntityDetails:
        try:
            doc = self.store.load_document(ref)
        except DocumentError as exc:
            LOGGER.warning("skipping entity %s: %s", ref.uuid, exc)
            return EntityDetails(ref=ref, name=self.graph.name_of(ref) or ref.uuid, error=str(exc))

        gates = [
            GateRow(
                name=str(gate.get("name", "")),
                suffix=str(gate.get("suffix", "")),
                swap_group=str(gate.get("swap_group", 0)),
                unit=self._unit_name(str(gate.get("unit", ""))),
            )
            for gate in dict(doc.get("gates") or {}).values()
        ]
        return EntityDetails(
            ref=ref,
            name=str(doc.get("name", "")),
            attributes=(
                self._manufacturer_row(doc),
                AttributeRow("Prefix", str(doc.get("prefix", ""))),
                AttributeRow("Tags", " ".join(self.store.tags(ref))),
            ),
            gates=tuple(natural_sorted(gates, key=lambda g: g.name)),
        )

    def unit_details(self, ref: RecordRef) -> UnitDetails:
        try:
            doc = self.store.load_document(ref)
        except DocumentError as exc:
            LOGGER.warning("skipping unit %s: %s", ref.uuid, exc)
            return UnitDetails(ref=ref, name=self.graph.name_of(ref) or ref.uuid, error=str(exc))

        unit_pins = dict(doc.get("pins") or {})
        pins = [
            PinRow(
                name=str(pin.get("primary_name", "")),
                direction=pin_direction_name(str(pin.get("direction", ""))),
                alternates=tuple(str(name) for name in pin.get("names", ())),
            )
            for pin in unit_pins.values()
        ]
        symbols = tuple(
            self._symbol_preview(RecordRef(RecordType.SYMBOL, uu)) for uu in self.store.symbols_of_unit(ref.uuid)
        )
        return UnitDetails(
            ref=ref,
            name=str(doc.get("name", "")),
            attributes=(self._manufacturer_row(doc),),
            pins=tuple(natural_sorted(pins, key=lambda p: p.name)),
            symbols=symbols,
        )

    def package_details(self, ref: RecordRef) -> PackageDetails:
        try:
            doc = self.store.load_document(ref)
            padstacks = self._padstacks_of(doc)
        except DocumentError as exc:
            LOGGER.warning("skipping package %s: %s", ref.uuid, exc)
            return PackageDetails(ref=ref, name=self.graph.name_of(ref) or ref.uuid, error=str(exc))

        image, error = self._package_image(ref)
        warnings = [f"Error rendering package: {error}"] if error is not None else []
        return PackageDetails(
            ref=ref,
            name=str(doc.get("name", "")),
            attributes=(
                self._manufacturer_row(doc),
                AttributeRow("Tags", " ".join(self.store.tags(ref))),
            ),
            rules=check_package(doc, padstacks),
            image=image,
            warnings=tuple(warnings),
        )

    def _parts_table_row(self, node: DerivedNode) -> PartsTableRow:
        parts = self.graph.parts
        try:
            resolved = resolve_part(node.ref.uuid, parts)
        except CyclicDerivation as exc:
            return PartsTableRow(node=node, resolved=None, error=str(exc))
        return PartsTableRow(node=node, resolved=resolved, tags=resolved.tags)

    def _pad_table(self, resolved: ResolvedPart) -> tuple[tuple[PadRow, ...], tuple[str, ...]]:
        if resolved.entity is None or resolved.package is None:
            raise DocumentError(f"part {resolved.ref.uuid} has no entity or package")
        entity = self.store.load_document(RecordRef(RecordType.ENTITY, resolved.entity))
        package = self.store.load_document(RecordRef(RecordType.PACKAGE, resolved.package))

        gates: dict[str, Mapping[str, Any]] = dict(entity.get("gates") or {})
        unit_pins: dict[str, Mapping[str, Any]] = {}
        all_pins: dict[tuple[str, str], str] = {}
        for gate_uu, gate in gates.items():
            unit = self.store.load_document(RecordRef(RecordType.UNIT, str(gate.get("unit", ""))))
            unit_pins[gate_uu] = dict(unit.get("pins") or {})
            for pin_uu, pin in unit_pins[gate_uu].items():
                all_pins[(gate_uu, pin_uu)] = f"{gate.get('name', '')}.{pin.get('primary_name', '')}"

        rows: list[PadRow] = []
        pads = dict(package.get("pads") or {})
        for pad_uu in natural_sorted(pads, key=lambda uu: str(pads[uu].get("name", ""))):
            name = str(pads[pad_uu].get("name", ""))
            item = resolved.pad_map.get(pad_uu)
            if item is None:
                rows.append(PadRow(pad=name, gate="-", pin="-"))
                continue
            gate = gates.get(item.gate, {})
            pin = unit_pins.get(item.gate, {}).get(item.pin, {})
            rows.append(
                PadRow(
                    pad=name,
                    gate=str(gate.get("name", item.gate)),
                    pin=str(pin.get("primary_name", item.pin)),
                )
            )
            all_pins.pop((item.gate, item.pin), None)
        return tuple(rows), tuple(natural_sorted(all_pins.values()))

    def root_previews(self, root: RecordRef, closure: ClosureResult) -> RootPreviews:
        images: list[RenderedImage] = []
        warnings: list[str] = []
        for node in closure.nodes_for_root(root):
            if node.ref.type == RecordType.PACKAGE:
                image, error = self._package_image(node.ref)
                if image is not None:
                    images.append(image)
                if error is not None:
                    warnings.append(f"Error rendering package {node.name}: {error}")
            elif node.ref.type == RecordType.SYMBOL:
                preview = self._symbol_preview(node.ref)
                images.extend(preview.images)
                if preview.error is not None:
                    warnings.append(f"Error rendering symbol {node.name}: {preview.error}")
        unique = {image.key: image for image in images}
        return RootPreviews(root=root, images=tuple(unique.values()), warnings=tuple(warnings))

    def _package_image(self, ref: RecordRef) -> tuple[RenderedImage | None, str | None]:
        cached = self._package_images.get(ref.uuid)
        if cached is not None:
            return cached
        try:
            doc = self.store.load_document(ref)
            result: tuple[RenderedImage | None, str | None] = (
                render_package_image(
                    doc,
                    self._padstacks_of(doc),
                    self.images_dir,
                    zoom=self.config.package_zoom,
                    margin_mm=self.config.package_margin_mm,
                ),
                None,
            )
        except (DocumentError, RenderError) as exc:
            LOGGER.warning("cannot render package %s: %s", ref.uuid, exc)
            result = (None, str(exc))
        self._package_images[ref.uuid] = result
        return result

    def _symbol_preview(self, ref: RecordRef) -> SymbolPreview:
        cached = self._symbol_previews.get(ref.uuid)
        if cached is not None:
            return cached
        name = self.graph.name_of(ref)
        try:
            doc = self.store.load_document(ref)
            images = render_symbol_images(
                doc,
                self.images_dir,
                pin_names=self._pin_names(str(doc.get("unit", ""))),
                zoom=self.config.symbol_zoom,
                margin_mm=self.config.symbol_margin_mm,
            )
        except (DocumentError, RenderError) as exc:
            LOGGER.warning("cannot render symbol %s: %s", ref.uuid, exc)
            preview = SymbolPreview(ref=ref, name=name, error=str(exc))
        else:
            preview = SymbolPreview(ref=ref, name=str(doc.get("name", name)), images=images)
        self._symbol_previews[ref.uuid] = preview
        return preview

    def _pin_names(self, unit_uuid: str) -> dict[str, str]:
        try:
            unit = self.store.load_document(RecordRef(RecordType.UNIT, unit_uuid))
        except DocumentError as exc:
            LOGGER.warning("symbol pins of unit %s stay unlabeled: %s", unit_uuid, exc)
            return {}
        pins = unit.get("pins")
        if not isinstance(pins, Mapping):
            return {}
        return {
            str(uu): str(pin.get("primary_name", "")) for uu, pin in pins.items() if isinstance(pin, Mapping)
        }

    def _padstacks_of(self, doc: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        pads = doc.get("pads")
        entries = pads.values() if isinstance(pads, Mapping) else pads if isinstance(pads, list) else ()
        return self.store.padstacks(str(pad.get("padstack", "")) for pad in entries if isinstance(pad, Mapping))

    def _manufacturer_row(self, doc: Mapping[str, Any]) -> AttributeRow:
        manufacturer = str(doc.get("manufacturer", ""))
        notes = [WHITESPACE_WARNING] if needs_trim(manufacturer) else []
        notes.append(f"({self.store.count_manufacturer(manufacturer)} other parts)")
        return AttributeRow("Manufacturer", manufacturer, notes=tuple(notes))

    def _unit_name(self, unit_uuid: str) -> str:
        return self.graph.name_of(RecordRef(RecordType.UNIT, unit_uuid)) or unit_uuid


def build_review(
    store: PoolStore,
    changes: Iterable[ChangeEntry],
    config: ReviewConfig,
    images_dir: str | Path,
) -> ReviewModel:
    return ReviewBuilder(store, config, images_dir).build(changes)
