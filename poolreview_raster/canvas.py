from __future__ import annotations

import numpy as np


RGBA = tuple[int, int, int, int]

TRANSPARENT: RGBA = (0, 0, 0, 0)
BLACK: RGBA = (0, 0, 0, 255)


def new_canvas(width: int, height: int, color: RGBA = TRANSPARENT) -> np.ndarray:
    if width <= 0 or height <= 0:
        raise ValueError(f"canvas size must be positive, got {width}x{height}")
    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[...] = np.asarray(color, dtype=np.uint8)
    return canvas


def blend_mask(dst: np.ndarray, x: int, y: int, mask: np.ndarray, color: RGBA) -> None:
    """Source-over `color` onto `dst`, weighted by the uint8 coverage `mask` whose top-left sits at (x, y)."""
    rows = _clip_span(y, mask.shape[0], dst.shape[0])
    cols = _clip_span(x, mask.shape[1], dst.shape[1])
    if rows is None or cols is None:
        return
    (dy0, dy1), (my0, my1) = rows
    (dx0, dx1), (mx0, mx1) = cols

    alpha = mask[my0:my1, mx0:mx1].astype(np.float32) * (color[3] / (255.0 * 255.0))
    if not alpha.any():
        return

    region = dst[dy0:dy1, dx0:dx1]
    under_alpha = region[..., 3].astype(np.float32) / 255.0
    keep = under_alpha * (1.0 - alpha)
    out_alpha = alpha + keep

    rgb = np.asarray(color[:3], dtype=np.float32)
    mixed = rgb * alpha[..., None] + region[..., :3].astype(np.float32) * keep[..., None]
    mixed /= np.where(out_alpha > 1e-6, out_alpha, 1.0)[..., None]

    region[..., :3] = np.clip(np.rint(mixed), 0, 255).astype(np.uint8)
    region[..., 3] = np.clip(np.rint(out_alpha * 255.0), 0, 255).astype(np.uint8)


def _clip_span(start: int, length: int, limit: int) -> tuple[tuple[int, int], tuple[int, int]] | None:
    lo = max(0, start)
    hi = min(limit, start + length)
    if length <= 0 or hi <= lo:
        return None
    return (lo, hi), (lo - start, hi - start)
