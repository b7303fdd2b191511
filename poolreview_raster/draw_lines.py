from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Sequence

import numpy as np
from PIL import Image, ImageDraw

from poolreview_raster.canvas import RGBA, blend_mask
from poolreview_raster.recording import LineCap, Point


SUPERSAMPLE = 4
MIN_STROKE_PX = 1.0


@dataclass(frozen=True)
class StrokeOutline:
    polygon: tuple[Point, ...]
    discs: tuple[tuple[Point, float], ...]

    def bounds(self) -> tuple[float, float, float, float] | None:
        xs: list[float] = []
        ys: list[float] = []
        for x, y in self.polygon:
            xs.append(x)
            ys.append(y)
        for (cx, cy), r in self.discs:
            xs.extend((cx - r, cx + r))
            ys.extend((cy - r, cy + r))
        if not xs:
            return None
        return (min(xs), min(ys), max(xs), max(ys))


def stroke_outline(p0: Point, p1: Point, width: float, cap: LineCap) -> StrokeOutline:
    half = max(width, MIN_STROKE_PX) / 2.0
    dx = p1[0] - p0[0]
    dy = p1[1] - p0[1]
    length = math.hypot(dx, dy)
    if length == 0.0:
        if cap == LineCap.ROUND:
            return StrokeOutline(polygon=(), discs=((p0, half),))
        if cap == LineCap.SQUARE:
            x, y = p0
            return StrokeOutline(
                polygon=((x - half, y - half), (x + half, y - half), (x + half, y + half), (x - half, y + half)),
                discs=(),
            )
        return StrokeOutline(polygon=(), discs=())

    ux = dx / length
    uy = dy / length
    nx = -uy * half
    ny = ux * half
    a = p0
    b = p1
    if cap == LineCap.SQUARE:
        a = (p0[0] - ux * half, p0[1] - uy * half)
        b = (p1[0] + ux * half, p1[1] + uy * half)
    polygon = (
        (a[0] + nx, a[1] + ny),
        (b[0] + nx, b[1] + ny),
        (b[0] - nx, b[1] - ny),
        (a[0] - nx, a[1] - ny),
    )
    discs: tuple[tuple[Point, float], ...] = ()
    if cap == LineCap.ROUND:
        discs = ((p0, half), (p1, half))
    return StrokeOutline(polygon=polygon, discs=discs)


def draw_line(dst: np.ndarray, p0: Point, p1: Point, width: float, cap: LineCap, color: RGBA) -> None:
    outline = stroke_outline(p0, p1, width, cap)
    polygons = (outline.polygon,) if outline.polygon else ()
    _fill(dst, polygons, outline.discs, color)


def draw_polygon(dst: np.ndarray, vertices: Sequence[Point], color: RGBA) -> None:
    if len(vertices) < 3:
        return
    _fill(dst, (tuple(vertices),), (), color)


def _fill(
    dst: np.ndarray,
    polygons: Sequence[Sequence[Point]],
    discs: Sequence[tuple[Point, float]],
    color: RGBA,
) -> None:
    xs: list[float] = []
    ys: list[float] = []
    for poly in polygons:
        xs.extend(p[0] for p in poly)
        ys.extend(p[1] for p in poly)
    for (cx, cy), r in discs:
        xs.extend((cx - r, cx + r))
        ys.extend((cy - r, cy + r))
    if not xs:
        return

    x0 = int(math.floor(min(xs)))
    y0 = int(math.floor(min(ys)))
    x1 = int(math.ceil(max(xs)))
    y1 = int(math.ceil(max(ys)))
    w = max(1, x1 - x0)
    h = max(1, y1 - y0)

    ss = SUPERSAMPLE
    image = Image.new("L", (w * ss, h * ss), 0)
    draw = ImageDraw.Draw(image)
    for poly in polygons:
        draw.polygon([((x - x0) * ss, (y - y0) * ss) for x, y in poly], fill=255)
    for (cx, cy), r in discs:
        draw.ellipse(
            [((cx - r) - x0) * ss, ((cy - r) - y0) * ss, ((cx + r) - x0) * ss, ((cy + r) - y0) * ss],
            fill=255,
        )
    if ss > 1:
        image = image.resize((w, h), Image.Resampling.BOX)
    blend_mask(dst, x0, y0, np.asarray(image, dtype=np.uint8), color)
