from __future__ import annotations

from dataclasses import dataclass
import io
import math
from pathlib import Path

import numpy as np
from PIL import Image

from .canvas import TRANSPARENT, new_canvas
from .draw_lines import draw_line, draw_polygon, stroke_outline
from .draw_text import draw_text, text_box
from .recording import LinePrimitive, PolygonPrimitive, Primitive, Recording, TextPrimitive

# pixel bounds closer than this to an integer snap to it
SNAP_EPSILON = 1e-6


@dataclass(frozen=True)
class Extents:
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    def union(self, other: "Extents") -> "Extents":
        return Extents(
            x0=min(self.x0, other.x0),
            y0=min(self.y0, other.y0),
            x1=max(self.x1, other.x1),
            y1=max(self.y1, other.y1),
        )


def ink_extents(recording: Recording, zoom: float = 1.0) -> Extents | None:
    """Tight bounding box of every primitive in device pixels at `zoom`; None when nothing has ink."""
    if zoom <= 0:
        raise ValueError("zoom must be > 0")
    cache = recording._extents_cache
    if zoom in cache:
        return cache[zoom]
    out: Extents | None = None
    for primitive in recording.primitives:
        box = _primitive_extents(primitive, zoom)
        if box is None:
            continue
        out = box if out is None else out.union(box)
    cache[zoom] = out
    return out


def rasterize(recording: Recording, *, zoom: float = 1.0, margin: float = 0.0) -> np.ndarray:
    """Render `recording` into an RGBA buffer sized to its ink extents plus `margin` (logical units)."""
    if margin < 0:
        raise ValueError("margin must be >= 0")
    margin_px = margin * recording.scale * zoom
    extents = ink_extents(recording, zoom)
    if extents is None:
        side = max(1, _ceil(2 * margin_px))
        return new_canvas(side, side, TRANSPARENT)

    x0 = _floor(extents.x0 - margin_px)
    y0 = _floor(extents.y0 - margin_px)
    x1 = _ceil(extents.x1 + margin_px)
    y1 = _ceil(extents.y1 + margin_px)
    dst = new_canvas(max(1, x1 - x0), max(1, y1 - y0), TRANSPARENT)
    for primitive in recording.primitives:
        _draw_primitive(dst, primitive, zoom, x0, y0)
    return dst


def encode_png(pixels: np.ndarray) -> bytes:
    image = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def write_png(pixels: np.ndarray, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(encode_png(pixels))
    return out


def _floor(value: float) -> int:
    return int(math.floor(value + SNAP_EPSILON))


def _ceil(value: float) -> int:
    return int(math.ceil(value - SNAP_EPSILON))


def _scaled(point: tuple[float, float], zoom: float, ox: float = 0.0, oy: float = 0.0) -> tuple[float, float]:
    return (point[0] * zoom - ox, point[1] * zoom - oy)


def _primitive_extents(primitive: Primitive, zoom: float) -> Extents | None:
    if isinstance(primitive, LinePrimitive):
        outline = stroke_outline(
            _scaled(primitive.p0, zoom), _scaled(primitive.p1, zoom), primitive.width * zoom, primitive.cap
        )
        bounds = outline.bounds()
        if bounds is None:
            return None
        return Extents(*bounds)
    if isinstance(primitive, PolygonPrimitive):
        pts = [_scaled(v, zoom) for v in primitive.vertices]
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        return Extents(min(xs), min(ys), max(xs), max(ys))
    if isinstance(primitive, TextPrimitive):
        x, y = _scaled(primitive.origin, zoom)
        left, top, w, h = text_box(primitive.text, size_px=primitive.size * zoom, quarter_turns=primitive.quarter_turns)
        ax = int(round(x)) + left
        ay = int(round(y)) + top
        return Extents(float(ax), float(ay), float(ax + w), float(ay + h))
    raise TypeError(f"unsupported primitive: {type(primitive).__name__}")


def _draw_primitive(dst: np.ndarray, primitive: Primitive, zoom: float, ox: int, oy: int) -> None:
    if isinstance(primitive, LinePrimitive):
        draw_line(
            dst,
            _scaled(primitive.p0, zoom, ox, oy),
            _scaled(primitive.p1, zoom, ox, oy),
            primitive.width * zoom,
            primitive.cap,
            primitive.color,
        )
    elif isinstance(primitive, PolygonPrimitive):
        draw_polygon(dst, [_scaled(v, zoom, ox, oy) for v in primitive.vertices], primitive.color)
    elif isinstance(primitive, TextPrimitive):
        x, y = _scaled(primitive.origin, zoom)
        draw_text(
            dst,
            int(round(x)) - ox,
            int(round(y)) - oy,
            primitive.text,
            primitive.color,
            size_px=primitive.size * zoom,
            quarter_turns=primitive.quarter_turns,
        )
    else:
        raise TypeError(f"unsupported primitive: {type(primitive).__name__}")
