from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Union

from .canvas import BLACK, RGBA


Point = tuple[float, float]

# logical units are nanometres; 2e-5 device pixels per nm is 20 px/mm
DEFAULT_SCALE = 2e-5
MM = 1_000_000


class LineCap(Enum):
    BUTT = "butt"
    ROUND = "round"
    SQUARE = "square"


@dataclass(frozen=True)
class Placement:
    shift: Point = (0.0, 0.0)
    angle: int = 0
    mirror: bool = False

    def __post_init__(self) -> None:
        if self.angle % 90 != 0:
            raise ValueError("placement angle must be a multiple of 90")

    @property
    def quarter_turns(self) -> int:
        return (self.angle // 90) % 4

    def transform(self, point: Point) -> Point:
        x, y = point
        if self.mirror:
            x = -x
        turns = self.quarter_turns
        if turns == 1:
            x, y = -y, x
        elif turns == 2:
            x, y = -x, -y
        elif turns == 3:
            x, y = y, -x
        return (x + self.shift[0], y + self.shift[1])

    def transform_angle(self, angle: int) -> int:
        if self.mirror:
            angle = -angle
        return (angle + self.angle) % 360

    def compose(self, inner: Placement) -> Placement:
        """Placement equivalent to applying `inner` first, then `self`."""
        angle = self.angle - inner.angle if self.mirror else self.angle + inner.angle
        return Placement(
            shift=self.transform(inner.shift),
            angle=angle % 360,
            mirror=self.mirror != inner.mirror,
        )

    @property
    def orientation_code(self) -> str:
        return f"{'m' if self.mirror else 'n'}{self.angle % 360}"


IDENTITY = Placement()


@dataclass(frozen=True)
class LinePrimitive:
    p0: Point
    p1: Point
    width: float
    cap: LineCap
    color: RGBA


@dataclass(frozen=True)
class PolygonPrimitive:
    vertices: tuple[Point, ...]
    color: RGBA


@dataclass(frozen=True)
class TextPrimitive:
    text: str
    origin: Point
    size: float
    quarter_turns: int
    color: RGBA


Primitive = Union[LinePrimitive, PolygonPrimitive, TextPrimitive]


@dataclass(frozen=True)
class Recording:
    """Ordered primitives in device units (pixels at zoom 1, Y down)."""

    primitives: tuple[Primitive, ...] = ()
    scale: float = DEFAULT_SCALE
    _extents_cache: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.primitives)

    @property
    def empty(self) -> bool:
        return not self.primitives


class RecordingCanvas:
    """Records drawing calls made in logical (Y-up) coordinates.

    The scale and the Y flip are fixed for the canvas lifetime; nothing is
    rasterized until the recording is handed to the rasterizer.
    """

    def __init__(self, scale: float = DEFAULT_SCALE) -> None:
        if scale <= 0:
            raise ValueError("scale must be > 0")
        self.scale = scale
        self._primitives: list[Primitive] = []

    def __len__(self) -> int:
        return len(self._primitives)

    @property
    def recording(self) -> Recording:
        return Recording(primitives=tuple(self._primitives), scale=self.scale)

    def to_device(self, point: Point, placement: Placement | None = None) -> Point:
        if placement is not None:
            point = placement.transform(point)
        return (point[0] * self.scale, -point[1] * self.scale)

    def line(
        self,
        p0: Point,
        p1: Point,
        width: float,
        *,
        cap: LineCap = LineCap.ROUND,
        placement: Placement | None = None,
        color: RGBA = BLACK,
    ) -> None:
        if width < 0:
            raise ValueError("line width must be >= 0")
        self._primitives.append(
            LinePrimitive(
                p0=self.to_device(p0, placement),
                p1=self.to_device(p1, placement),
                width=width * self.scale,
                cap=cap,
                color=color,
            )
        )

    def polyline(
        self,
        points: Iterable[Point],
        width: float,
        *,
        cap: LineCap = LineCap.ROUND,
        placement: Placement | None = None,
        color: RGBA = BLACK,
    ) -> None:
        pts = list(points)
        for a, b in zip(pts, pts[1:]):
            self.line(a, b, width, cap=cap, placement=placement, color=color)

    def polygon(
        self,
        vertices: Iterable[Point],
        *,
        placement: Placement | None = None,
        color: RGBA = BLACK,
    ) -> None:
        pts = tuple(self.to_device(v, placement) for v in vertices)
        if len(pts) < 3:
            raise ValueError("polygon needs at least 3 vertices")
        self._primitives.append(PolygonPrimitive(vertices=pts, color=color))

    def text(
        self,
        text: str,
        position: Point,
        size: float,
        *,
        angle: int = 0,
        placement: Placement | None = None,
        color: RGBA = BLACK,
    ) -> None:
        if not text:
            return
        if size <= 0:
            raise ValueError("text size must be > 0")
        if placement is not None:
            angle = placement.transform_angle(angle)
        turns = int(round((angle % 360) / 90.0)) % 4
        self._primitives.append(
            TextPrimitive(
                text=text,
                origin=self.to_device(position, placement),
                size=size * self.scale,
                quarter_turns=turns,
                color=color,
            )
        )
