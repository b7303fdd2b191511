from .canvas import BLACK, RGBA, TRANSPARENT, blend_mask, new_canvas
from .draw_lines import draw_line, draw_polygon, stroke_outline
from .draw_text import draw_text, text_box, text_mask
from .rasterizer import Extents, encode_png, ink_extents, rasterize, write_png
from .recording import (
    DEFAULT_SCALE,
    IDENTITY,
    MM,
    LineCap,
    LinePrimitive,
    Placement,
    PolygonPrimitive,
    Recording,
    RecordingCanvas,
    TextPrimitive,
)

__all__ = [
    "BLACK",
    "DEFAULT_SCALE",
    "Extents",
    "IDENTITY",
    "LineCap",
    "LinePrimitive",
    "MM",
    "Placement",
    "PolygonPrimitive",
    "RGBA",
    "Recording",
    "RecordingCanvas",
    "TRANSPARENT",
    "TextPrimitive",
    "blend_mask",
    "draw_line",
    "draw_polygon",
    "draw_text",
    "encode_png",
    "ink_extents",
    "new_canvas",
    "rasterize",
    "stroke_outline",
    "text_box",
    "text_mask",
    "write_png",
]
