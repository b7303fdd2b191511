from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from pathlib import Path
from typing import Any, Mapping, Sequence

from poolreview_core.core.errors import RenderError
from poolreview_core.core.records import RecordType
from poolreview_raster import (
    BLACK,
    IDENTITY,
    MM,
    RGBA,
    LineCap,
    Placement,
    RecordingCanvas,
    rasterize,
    write_png,
)
from poolreview_raster.recording import Point

LOGGER = logging.getLogger(__name__)

SYMBOL_VIEWS: tuple[Placement, ...] = tuple(
    Placement(angle=angle, mirror=mirror) for mirror in (False, True) for angle in (0, 90, 180, 270)
)

SYMBOL_TEXT_SIZE = 1.5 * MM
PIN_NAME_SIZE = 1.0 * MM
PIN_NAME_GAP = 0.5 * MM
PACKAGE_TEXT_SIZE = 1.0 * MM
OUTLINE_WIDTH = 0.0
CIRCLE_SEGMENTS = 32

PIN_COLOR: RGBA = (0, 96, 0, 255)
PAD_COLOR: RGBA = (184, 115, 51, 255)
LAYER_COLORS: Mapping[str, RGBA] = {
    "silkscreen": BLACK,
    "package": (96, 96, 96, 255),
    "assembly": (80, 80, 200, 255),
    "courtyard": (160, 160, 160, 255),
}

PIN_DIRECTIONS: Mapping[str, Point] = {
    "right": (1.0, 0.0),
    "left": (-1.0, 0.0),
    "up": (0.0, 1.0),
    "down": (0.0, -1.0),
}

VALUE_PLACEHOLDER = "$VALUE\nGroup\nTag"
REFDES_PLACEHOLDER = "M1234"

# symbol geometry errors surface as one of these while parsing the JSON body
_GEOMETRY_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError)


@dataclass(frozen=True)
class RenderedImage:
    record_type: RecordType
    uuid: str
    orientation: str | None
    path: Path

    @property
    def key(self) -> tuple[RecordType, str, str | None]:
        return (self.record_type, self.uuid, self.orientation)

    @property
    def filename(self) -> str:
        return self.path.name


def image_filename(record_type: RecordType, uuid: str, orientation: str | None = None) -> str:
    prefix = record_type.info.image_prefix
    if not prefix:
        raise ValueError(f"{record_type.value} records have no preview image")
    if orientation is None:
        return f"{prefix}_{uuid}.png"
    return f"{prefix}_{uuid}_{orientation}.png"


@dataclass(frozen=True)
class _Line:
    p0: Point
    p1: Point
    width: float
    color: RGBA


@dataclass(frozen=True)
class _Polygon:
    vertices: tuple[Point, ...]
    fill: bool
    color: RGBA


@dataclass(frozen=True)
class _Text:
    text: str
    position: Point
    size: float
    angle: int


@dataclass(frozen=True)
class _Pin:
    name: str
    position: Point
    length: float
    direction: Point


class SymbolDrawing:
    """Schematic symbol body built from its JSON document.

    `pin_names` maps unit pin uuids to their primary names; pins without an
    entry are drawn with an empty label.
    """

    def __init__(self, doc: Mapping[str, Any], pin_names: Mapping[str, str] | None = None) -> None:
        self.uuid = str(doc.get("uuid", ""))
        names = pin_names or {}
        try:
            self.lines = tuple(_parse_line(item, BLACK) for item in _values(doc.get("lines")))
            self.polygons = tuple(_parse_polygon(item, BLACK) for item in _values(doc.get("polygons")))
            self.texts = {
                str(uu): _parse_text(item, SYMBOL_TEXT_SIZE) for uu, item in dict(doc.get("texts") or {}).items()
            }
            self.pins = tuple(
                _parse_pin(item, names.get(str(uu), "")) for uu, item in dict(doc.get("pins") or {}).items()
            )
            self.text_placements = {
                (int(item["angle"]) % 360, bool(item.get("mirror", False)), str(item["text"])): _Text(
                    text="",
                    position=_point(item["position"]),
                    size=0.0,
                    angle=int(item.get("text_angle", 0)),
                )
                for item in doc.get("text_placements") or ()
            }
        except _GEOMETRY_ERRORS as exc:
            raise RenderError(f"malformed symbol {self.uuid}: {exc}") from exc

    @property
    def has_text_placements(self) -> bool:
        return bool(self.text_placements)

    def render(self, canvas: RecordingCanvas, placement: Placement = IDENTITY) -> None:
        for line in self.lines:
            canvas.line(line.p0, line.p1, line.width, placement=placement, color=line.color)
        for polygon in self.polygons:
            _draw_polygon(canvas, polygon, placement)
        for pin in self.pins:
            _draw_pin(canvas, pin, placement)
        for uu, text in self.texts.items():
            body = VALUE_PLACEHOLDER if text.text == "$VALUE" else text.text
            override = self.text_placements.get((placement.angle % 360, placement.mirror, uu))
            if override is not None:
                # overrides are given in the placed frame
                canvas.text(body, override.position, text.size, angle=override.angle)
            else:
                canvas.text(body, text.position, text.size, angle=text.angle, placement=placement)


class PackageDrawing:
    """Footprint built from a package document and the padstacks its pads use."""

    def __init__(self, doc: Mapping[str, Any], padstacks: Mapping[str, Mapping[str, Any]]) -> None:
        self.uuid = str(doc.get("uuid", ""))
        try:
            self.lines = tuple(
                _parse_line(item, _layer_color(item.get("layer"))) for item in _values(doc.get("lines"))
            )
            self.polygons = tuple(
                _parse_polygon(item, _layer_color(item.get("layer"))) for item in _values(doc.get("polygons"))
            )
            self.texts = tuple(_parse_text(item, PACKAGE_TEXT_SIZE) for item in _values(doc.get("texts")))
            pads = _values(doc.get("pads"))
        except _GEOMETRY_ERRORS as exc:
            raise RenderError(f"malformed package {self.uuid}: {exc}") from exc

        self.pads: list[tuple[Placement, tuple[_Polygon, ...]]] = []
        for pad in pads:
            if not isinstance(pad, Mapping):
                raise RenderError(f"malformed pad entry in package {self.uuid}: {pad!r}")
            padstack_uuid = str(pad.get("padstack", ""))
            padstack = padstacks.get(padstack_uuid)
            if padstack is None:
                raise RenderError(
                    f"pad {pad.get('name', '')} of package {self.uuid} uses unknown padstack {padstack_uuid}"
                )
            try:
                placement = Placement(
                    shift=_point(pad.get("position", (0, 0))),
                    angle=int(pad.get("angle", 0)),
                    mirror=bool(pad.get("mirror", False)),
                )
                shapes = padstack_shapes(padstack)
            except _GEOMETRY_ERRORS as exc:
                raise RenderError(f"malformed pad {pad.get('name', '')} of package {self.uuid}: {exc}") from exc
            self.pads.append((placement, shapes))

    def render(self, canvas: RecordingCanvas, placement: Placement = IDENTITY) -> None:
        for pad_placement, shapes in self.pads:
            combined = placement.compose(pad_placement)
            for shape in shapes:
                _draw_polygon(canvas, shape, combined)
        for polygon in self.polygons:
            _draw_polygon(canvas, polygon, placement)
        for line in self.lines:
            canvas.line(line.p0, line.p1, line.width, placement=placement, color=line.color)
        for text in self.texts:
            body = REFDES_PLACEHOLDER if text.text == "$RD" else text.text
            canvas.text(body, text.position, text.size, angle=text.angle, placement=placement)


def padstack_shapes(padstack: Mapping[str, Any]) -> tuple[_Polygon, ...]:
    shapes: list[_Polygon] = []
    for shape in _values(padstack.get("shapes")):
        form = shape.get("form", "rectangle")
        cx, cy = _point(shape.get("position", (0, 0)))
        if form == "rectangle":
            hw = float(shape["width"]) / 2
            hh = float(shape["height"]) / 2
            vertices = ((cx - hw, cy - hh), (cx + hw, cy - hh), (cx + hw, cy + hh), (cx - hw, cy + hh))
        elif form == "circle":
            r = float(shape["diameter"]) / 2
            steps = [2 * math.pi * i / CIRCLE_SEGMENTS for i in range(CIRCLE_SEGMENTS)]
            vertices = tuple((cx + r * math.cos(t), cy + r * math.sin(t)) for t in steps)
        else:
            raise ValueError(f"unsupported pad shape `{form}`")
        shapes.append(_Polygon(vertices=vertices, fill=True, color=PAD_COLOR))
    for polygon in _values(padstack.get("polygons")):
        shapes.append(_parse_polygon(dict(polygon, fill=True), PAD_COLOR))
    return tuple(shapes)


def render_symbol_images(
    doc: Mapping[str, Any],
    out_dir: str | Path,
    *,
    pin_names: Mapping[str, str] | None = None,
    zoom: float = 1.0,
    margin_mm: float = 1.25,
) -> tuple[RenderedImage, ...]:
    """One image for a plain symbol, eight orientations when the symbol carries text placements."""
    drawing = SymbolDrawing(doc, pin_names)
    views: Sequence[Placement | None] = SYMBOL_VIEWS if drawing.has_text_placements else (None,)
    images: list[RenderedImage] = []
    for view in views:
        canvas = RecordingCanvas()
        try:
            drawing.render(canvas, view or IDENTITY)
        except ValueError as exc:
            raise RenderError(f"cannot draw symbol {drawing.uuid}: {exc}") from exc
        orientation = None if view is None else view.orientation_code
        path = Path(out_dir) / image_filename(RecordType.SYMBOL, drawing.uuid, orientation)
        write_png(rasterize(canvas.recording, zoom=zoom, margin=margin_mm * MM), path)
        LOGGER.debug("wrote %s", path)
        images.append(RenderedImage(RecordType.SYMBOL, drawing.uuid, orientation, path))
    return tuple(images)


def render_package_image(
    doc: Mapping[str, Any],
    padstacks: Mapping[str, Mapping[str, Any]],
    out_dir: str | Path,
    *,
    zoom: float = 5.0,
    margin_mm: float = 0.0,
) -> RenderedImage:
    drawing = PackageDrawing(doc, padstacks)
    canvas = RecordingCanvas()
    try:
        drawing.render(canvas)
    except ValueError as exc:
        raise RenderError(f"cannot draw package {drawing.uuid}: {exc}") from exc
    path = Path(out_dir) / image_filename(RecordType.PACKAGE, drawing.uuid)
    write_png(rasterize(canvas.recording, zoom=zoom, margin=margin_mm * MM), path)
    LOGGER.debug("wrote %s", path)
    return RenderedImage(RecordType.PACKAGE, drawing.uuid, None, path)


def _values(collection: Any) -> list[Any]:
    if collection is None:
        return []
    if isinstance(collection, Mapping):
        return list(collection.values())
    return list(collection)


def _point(value: Any) -> Point:
    x, y = value
    return (float(x), float(y))


def _layer_color(layer: Any) -> RGBA:
    return LAYER_COLORS.get(str(layer), BLACK)


def _parse_line(item: Mapping[str, Any], color: RGBA) -> _Line:
    width = float(item.get("width", OUTLINE_WIDTH))
    if width < 0:
        raise ValueError(f"line width {width} is negative")
    return _Line(p0=_point(item["from"]), p1=_point(item["to"]), width=width, color=color)


def _parse_polygon(item: Mapping[str, Any], color: RGBA) -> _Polygon:
    vertices = tuple(_point(v) for v in item["vertices"])
    if len(vertices) < 3:
        raise ValueError("polygon needs at least 3 vertices")
    return _Polygon(vertices=vertices, fill=bool(item.get("fill", False)), color=color)


def _parse_text(item: Mapping[str, Any], default_size: float) -> _Text:
    angle = int(item.get("angle", 0))
    if angle % 90 != 0:
        raise ValueError(f"text angle {angle} is not a multiple of 90")
    size = float(item.get("size", default_size))
    if size <= 0:
        raise ValueError(f"text size {size} must be positive")
    return _Text(
        text=str(item.get("text", "")),
        position=_point(item.get("position", (0, 0))),
        size=size,
        angle=angle,
    )


def _parse_pin(item: Mapping[str, Any], name: str) -> _Pin:
    orientation = str(item.get("orientation", "right"))
    if orientation not in PIN_DIRECTIONS:
        raise ValueError(f"unknown pin orientation `{orientation}`")
    return _Pin(
        name=name,
        position=_point(item["position"]),
        length=float(item.get("length", 2.5 * MM)),
        direction=PIN_DIRECTIONS[orientation],
    )


def _draw_polygon(canvas: RecordingCanvas, polygon: _Polygon, placement: Placement) -> None:
    if polygon.fill:
        canvas.polygon(polygon.vertices, placement=placement, color=polygon.color)
        return
    closed = polygon.vertices + polygon.vertices[:1]
    canvas.polyline(closed, OUTLINE_WIDTH, cap=LineCap.ROUND, placement=placement, color=polygon.color)


def _draw_pin(canvas: RecordingCanvas, pin: _Pin, placement: Placement) -> None:
    x, y = pin.position
    dx, dy = pin.direction
    end = (x + dx * pin.length, y + dy * pin.length)
    canvas.line(pin.position, end, OUTLINE_WIDTH, placement=placement, color=PIN_COLOR)
    if not pin.name:
        return
    label = (end[0] + dx * PIN_NAME_GAP, end[1] + dy * PIN_NAME_GAP)
    angle = 90 if dx == 0 else 0
    canvas.text(pin.name, label, PIN_NAME_SIZE, angle=angle, placement=placement, color=PIN_COLOR)
