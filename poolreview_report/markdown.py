from __future__ import annotations

from poolreview_core.core import PartAttribute, RecordType

from .checks import WHITESPACE_WARNING, RulesCheckLevel, needs_trim
from .previews import RenderedImage
from .review import (
    AttributeRow,
    EntityDetails,
    PackageDetails,
    PartDetails,
    PartsTableRow,
    ReviewModel,
    RootPreviews,
    UnitDetails,
)

PARTS_TABLE_COLUMNS = ("MPN", "Value", "Manufacturer", "Datasheet", "Description", "Tags")
PARTS_TABLE_ATTRIBUTES = (
    PartAttribute.MPN,
    PartAttribute.VALUE,
    PartAttribute.MANUFACTURER,
    PartAttribute.DATASHEET,
    PartAttribute.DESCRIPTION,
)


def render_markdown(model: ReviewModel, *, images_prefix: str = "") -> str:
    lines: list[str] = []
    _items_section(lines, model)
    _non_items_section(lines, model)
    _overview_section(lines, model)
    _orphans_section(lines, model)
    if model.has_derived_changes:
        _derived_section(lines, model)
        _parts_table_section(lines, model.parts_table)

    lines.append("# Details")
    lines.append("## Parts")
    for part in model.parts:
        _part_details(lines, part)
        previews = model.previews_for(part.ref)
        if previews is not None:
            _root_previews(lines, previews, images_prefix)
    lines.append("## Entities")
    for entity in model.entities:
        _entity_details(lines, entity)
    lines.append("## Units")
    for unit in model.units:
        _unit_details(lines, unit, images_prefix)
    lines.append("## Packages")
    for package in model.packages:
        _package_details(lines, package, images_prefix)
    return "\n".join(lines) + "\n"


def image_link(kind: str, image: RenderedImage, images_prefix: str = "") -> str:
    return f"![{kind}]({images_prefix}{image.filename})"


def _cell(value: str) -> str:
    return value.replace("|", "\\|")


def _surround(marker: str, text: str, enabled: bool) -> str:
    if not enabled or not text:
        return text
    return f"{marker}{text}{marker}"


def _items_section(lines: list[str], model: ReviewModel) -> None:
    lines.append("# Items in this PR")
    lines.append("| State | Type | Name | Filename |")
    lines.append("| --- | --- | --- | --- |")
    for item in model.resolution.items:
        name = _cell(item.name)
        if needs_trim(item.name):
            name += " " + WHITESPACE_WARNING
        lines.append(f"|{item.change.label} | {item.type.info.display_name} | {name} | {_cell(item.filename)}")
    lines.append("")


def _non_items_section(lines: list[str], model: ReviewModel) -> None:
    if model.resolution.non_items:
        lines.append("# Non-items")
        for path in model.resolution.non_items:
            lines.append(f" - {path}")
    lines.append("")


def _overview_section(lines: list[str], model: ReviewModel) -> None:
    lines.append("# Parts overview (excluding derived)")
    lines.append("Bold items are from this PR")
    for node in model.closure.nodes:
        label = f"{node.ref.type.info.display_name} {node.name}"
        lines.append("  " * node.depth + "- " + _surround("**", label, node.in_change))
    for warning in model.closure.warnings:
        lines.append(f":warning: {warning}")
    lines.append("")


def _orphans_section(lines: list[str], model: ReviewModel) -> None:
    if not model.orphans:
        return
    lines.append("# Items not associated with any part")
    for item in model.orphans:
        lines.append(f" - {item.type.info.display_name} {item.name}")
    lines.append("")


def _derived_section(lines: list[str], model: ReviewModel) -> None:
    lines.append("# Derived parts")
    lines.append("Bold items are from this PR")
    for node in model.derived:
        lines.append("  " * node.depth + "- " + _surround("**", node.name, node.in_change))
    lines.append("")


def _parts_table_section(lines: list[str], rows: tuple[PartsTableRow, ...]) -> None:
    lines.append("# Parts table")
    lines.append("Values in italic are inherited")
    lines.append("| " + " | ".join(PARTS_TABLE_COLUMNS) + " |")
    lines.append("| " + " | ".join("-" * max(3, len(c)) for c in PARTS_TABLE_COLUMNS) + " |")
    for row in rows:
        if row.resolved is None:
            lines.append(f"| {_cell(row.node.name)} | :warning: {_cell(row.error or '')} | | | | |")
            continue
        cells = [
            _surround("*", _cell(row.resolved.value(attr)), row.resolved.is_inherited(attr))
            for attr in PARTS_TABLE_ATTRIBUTES
        ]
        cells.append(_surround("*", " ".join(row.tags), row.resolved.tags_inherited))
        lines.append("| " + " | ".join(cells) + " |")
    lines.append("")


def _attribute_table(lines: list[str], rows: tuple[AttributeRow, ...]) -> None:
    lines.append("| Attribute | Value |")
    lines.append("| --- | --- |")
    for row in rows:
        text = " ".join((_cell(row.value),) + row.notes)
        lines.append(f"|{row.label} | {text}")


def _part_details(lines: list[str], part: PartDetails) -> None:
    lines.append(f"### {part.mpn}")
    if part.error is not None:
        lines.append(f":warning: {part.error}")
        lines.append("")
        return
    if part.base_mpn is not None:
        lines.append(f"Inherits from {part.base_mpn}")
    _attribute_table(lines, part.attributes)
    lines.append(f"|Tags | {' '.join(part.tags)}")
    lines.append("")
    for warning in part.warnings:
        lines.append(f":warning: {warning}")
    lines.append("")
    if not part.show_pads:
        return
    lines.append("| Pad | Gate | Pin |")
    lines.append("| --- | --- | --- |")
    for pad in part.pads:
        lines.append(f"| {_cell(pad.pad)} | {_cell(pad.gate)} | {_cell(pad.pin)} |")
    lines.append("")
    if part.unmapped_pins:
        lines.append(":x: unmapped pins:")
        for pin in part.unmapped_pins:
            lines.append(f" - {pin}")
        lines.append("")


def _entity_details(lines: list[str], entity: EntityDetails) -> None:
    lines.append(f"### {entity.name}")
    if entity.error is not None:
        lines.append(f":warning: {entity.error}")
        lines.append("")
        return
    _attribute_table(lines, entity.attributes)
    lines.append("")
    if entity.gates:
        lines.append("| Gate | Suffix | Swap group | Unit |")
        lines.append("| --- | --- | --- | --- |")
        for gate in entity.gates:
            lines.append(f"|{_cell(gate.name)} | {_cell(gate.suffix)} | {gate.swap_group} | {_cell(gate.unit)}")
    else:
        lines.append(":warning: Entity has no gates!")
    lines.append("")


def _unit_details(lines: list[str], unit: UnitDetails, images_prefix: str) -> None:
    lines.append(f"### {unit.name}")
    if unit.error is not None:
        lines.append(f":warning: {unit.error}")
        lines.append("")
        return
    _attribute_table(lines, unit.attributes)
    lines.append("")
    if unit.pins:
        lines.append("| Pin | Direction | Alternate names |")
        lines.append("| --- | --- | --- |")
        for pin in unit.pins:
            lines.append(f"|{_cell(pin.name)} | {pin.direction} | {_cell(', '.join(pin.alternates))}")
    else:
        lines.append(":x: Unit has no pins!")
    lines.append("")

    if not unit.symbols:
        lines.append(":x: Unit has no symbols!")
        lines.append("")
    for symbol in unit.symbols:
        lines.append(f"#### Symbol: {symbol.name}")
        if symbol.error is not None:
            lines.append(f":warning: Error rendering symbol: {symbol.error}")
            lines.append("")
            continue
        for image in symbol.images:
            _image_lines(lines, image, images_prefix)


def _root_previews(lines: list[str], previews: RootPreviews, images_prefix: str) -> None:
    if not previews.images and not previews.warnings:
        return
    lines.append("#### Previews")
    for warning in previews.warnings:
        lines.append(f":warning: {warning}")
    if previews.warnings:
        lines.append("")
    for image in previews.images:
        _image_lines(lines, image, images_prefix)


def _image_lines(lines: list[str], image: RenderedImage, images_prefix: str) -> None:
    if image.orientation is not None:
        mirrored = image.orientation.startswith("m")
        lines.append(f"{'Mirrored' if mirrored else 'Normal'} {image.orientation[1:]}°")
    lines.append(image_link(image.record_type.info.display_name, image, images_prefix))
    lines.append("")


def _package_details(lines: list[str], package: PackageDetails, images_prefix: str) -> None:
    lines.append(f"### {package.name}")
    if package.error is not None:
        lines.append(f":warning: {package.error}")
        lines.append("")
        return
    _attribute_table(lines, package.attributes)
    lines.append("")

    rules = package.rules
    if rules is not None and not rules.passed:
        lines.append("Checks didn't pass")
        for error in rules.errors:
            icon = ":x:" if error.level == RulesCheckLevel.FAIL else ":warning:"
            lines.append(f" - {icon} {error.comment}")
    else:
        lines.append(":heavy_check_mark: Checks passed")
    lines.append("")

    for warning in package.warnings:
        lines.append(f":warning: {warning}")
    if package.image is not None:
        lines.append(image_link(RecordType.PACKAGE.info.display_name, package.image, images_prefix))
    lines.append("")
