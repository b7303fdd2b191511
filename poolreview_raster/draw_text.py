from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from poolreview_raster.canvas import RGBA, blend_mask


DEFAULT_FONT_FAMILY = "DejaVu Sans"
FONT_FALLBACKS = ("DejaVu Sans", "Liberation Sans", "Arial", "Helvetica")
LINE_SPACING = 1.2
FONT_DIRS = (
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path.home() / ".fonts",
    Path("/Library/Fonts"),
    Path("/System/Library/Fonts"),
)


def draw_text(
    dst: np.ndarray,
    x: float,
    y: float,
    text: str,
    color: RGBA,
    *,
    size_px: float,
    quarter_turns: int = 0,
    font_family: str = DEFAULT_FONT_FAMILY,
) -> None:
    """Draw `text` with the first line's baseline-left corner at (x, y)."""
    if not text:
        return
    left, top, _, _ = text_box(text, size_px=size_px, quarter_turns=quarter_turns, font_family=font_family)
    mask = text_mask(text, size_px=size_px, quarter_turns=quarter_turns, font_family=font_family)
    blend_mask(dst, int(round(x)) + left, int(round(y)) + top, mask, color)


def text_box(
    text: str,
    *,
    size_px: float,
    quarter_turns: int = 0,
    font_family: str = DEFAULT_FONT_FAMILY,
) -> tuple[int, int, int, int]:
    """(left, top, width, height) of the text ink relative to its anchor, in pixels."""
    block = _block_mask(text, _font_px(size_px), font_family)
    h, w = block.shape
    line_height = _line_height(_font_px(size_px))
    a = -line_height
    b = h - line_height
    turns = quarter_turns % 4
    if turns == 0:
        return (0, a, w, h)
    if turns == 1:
        return (a, -w, h, w)
    if turns == 2:
        return (-w, -b, w, h)
    return (-b, 0, h, w)


def text_mask(
    text: str,
    *,
    size_px: float,
    quarter_turns: int = 0,
    font_family: str = DEFAULT_FONT_FAMILY,
) -> np.ndarray:
    block = _block_mask(text, _font_px(size_px), font_family)
    turns = quarter_turns % 4
    if turns == 0:
        return block
    return np.ascontiguousarray(np.rot90(block, k=turns))


def _font_px(size_px: float) -> int:
    return max(1, int(round(size_px)))


def _line_height(font_px: int) -> int:
    return max(1, int(round(font_px * LINE_SPACING)))


@lru_cache(maxsize=256)
def _block_mask(text: str, font_px: int, font_family: str) -> np.ndarray:
    font = _load_font(font_family, font_px)
    line_height = _line_height(font_px)
    lines = text.split("\n")
    masks = [_render_mask(line, font) for line in lines]
    width = max(1, max(m.shape[1] for m in masks))
    height = line_height * len(lines)
    block = np.zeros((height, width), dtype=np.uint8)
    for index, mask in enumerate(masks):
        mh, mw = mask.shape
        mh = min(mh, line_height)
        row = index * line_height + (line_height - mh)
        block[row : row + mh, :mw] = np.maximum(block[row : row + mh, :mw], mask[-mh:, :])
    block.setflags(write=False)
    return block


def _render_mask(line: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont) -> np.ndarray:
    if not line:
        return np.zeros((1, 1), dtype=np.uint8)
    x0, y0, x1, y1 = font.getbbox(line)
    canvas = Image.new("L", (max(1, int(x1 - x0)), max(1, int(y1 - y0))), 0)
    ImageDraw.Draw(canvas).text((-x0, -y0), line, fill=255, font=font)
    return np.asarray(canvas, dtype=np.uint8)


@lru_cache(maxsize=64)
def _load_font(font_family: str, font_px: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    path = _resolve_font_path(font_family)
    if path is not None:
        try:
            return ImageFont.truetype(str(path), size=font_px)
        except OSError:
            pass
    return ImageFont.load_default(size=font_px)


def _font_key(name: str) -> str:
    return name.lower().replace(" ", "").removesuffix("-regular").removesuffix("regular")


@lru_cache(maxsize=1)
def _installed_fonts() -> dict[str, Path]:
    found: dict[str, Path] = {}
    for base in FONT_DIRS:
        if not base.is_dir():
            continue
        for path in sorted(base.rglob("*")):
            if path.suffix.lower() in (".ttf", ".otf"):
                found.setdefault(_font_key(path.stem), path)
    return found


@lru_cache(maxsize=16)
def _resolve_font_path(font_family: str) -> Path | None:
    installed = _installed_fonts()
    wanted = font_family.strip() or DEFAULT_FONT_FAMILY
    for name in (wanted,) + FONT_FALLBACKS:
        path = installed.get(_font_key(name))
        if path is not None:
            return path
    return None
