# compositor.py
# Rasterises dot descriptors onto a transparent RGBA canvas.
#
# Shapes are drawn straight into numpy buffers with analytic anti-aliasing:
# each pixel gets the fraction of its area covered by the shape, and dots are
# blended source-over in premultiplied space. Binary alpha hardening is a
# separate pass so previews keep their smooth edges.

import math
from functools import lru_cache
from typing import Iterable, Tuple

import numpy as np

from halftone_types import AlphaMode, DotDescriptor, DotShape

# Mask cache keys are rounded to this many decimals (1/100 px)
_KEY_PRECISION = 2


@lru_cache(maxsize=4096)
def coverage_mask(shape: DotShape, rx: float, ry: float, fx: float, fy: float) -> Tuple[int, np.ndarray]:
    """Per-pixel coverage of a shape centred at (fx, fy) within pixel (0, 0).

    Returns (n, mask) where mask has shape (2n+1, 2n+1) and index [n, n] is
    the pixel holding the centre.
    """
    n = int(math.ceil(max(rx, ry))) + 1
    offsets = np.arange(-n, n + 1, dtype=np.float64)

    if shape == DotShape.SQUARE:
        # Exact overlap of each pixel span [o, o + 1) with [c - r, c + r)
        ox = np.clip(np.minimum(offsets + 1, fx + rx) - np.maximum(offsets, fx - rx), 0.0, 1.0)
        oy = np.clip(np.minimum(offsets + 1, fy + ry) - np.maximum(offsets, fy - ry), 0.0, 1.0)
        mask = np.outer(oy, ox)
    else:
        dx = (offsets + 0.5 - fx)[np.newaxis, :]
        dy = (offsets + 0.5 - fy)[:, np.newaxis]
        if shape == DotShape.CIRCLE:
            signed = np.hypot(dx, dy) - rx
        else:
            # First-order signed distance to the ellipse boundary
            g = (dx / rx) ** 2 + (dy / ry) ** 2 - 1.0
            grad = 2.0 * np.sqrt(dx ** 2 / rx ** 4 + dy ** 2 / ry ** 4)
            signed = g / np.maximum(grad, 1e-9)
        mask = np.clip(0.5 - signed, 0.0, 1.0)
        # Sub-pixel dots: the half-pixel ramp overstates area, cap at the true area
        area = math.pi * rx * ry
        if max(rx, ry) < 1.0 and mask.sum() > area:
            mask = mask * (area / mask.sum())

    mask = mask.astype(np.float32)
    mask.setflags(write=False)
    return n, mask


class Canvas:
    """Premultiplied float canvas, fully transparent until dots are drawn."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.color = np.zeros((height, width, 3), dtype=np.float32)
        self.alpha = np.zeros((height, width), dtype=np.float32)

    def draw(self, dot: DotDescriptor) -> None:
        if dot.opacity <= 0.0 or dot.rx <= 0.0 or dot.ry <= 0.0:
            return

        ix, iy = math.floor(dot.cx), math.floor(dot.cy)
        n, mask = coverage_mask(
            DotShape(dot.shape),
            round(dot.rx, _KEY_PRECISION),
            round(dot.ry, _KEY_PRECISION),
            round(dot.cx - ix, _KEY_PRECISION),
            round(dot.cy - iy, _KEY_PRECISION),
        )

        x0, y0 = ix - n, iy - n
        size = 2 * n + 1
        left, right = max(x0, 0), min(x0 + size, self.width)
        top, bottom = max(y0, 0), min(y0 + size, self.height)
        if left >= right or top >= bottom:
            return

        src = mask[top - y0:bottom - y0, left - x0:right - x0] * np.float32(min(dot.opacity, 1.0))
        inv = 1.0 - src

        alpha = self.alpha[top:bottom, left:right]
        alpha *= inv
        alpha += src

        color = self.color[top:bottom, left:right]
        color *= inv[..., np.newaxis]
        color += src[..., np.newaxis] * np.asarray(dot.rgb, dtype=np.float32)

    def to_rgba(self) -> np.ndarray:
        out = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        alpha_byte = np.clip(np.floor(self.alpha * 255.0 + 0.5), 0, 255).astype(np.uint8)
        visible = alpha_byte > 0

        rgb = self.color[visible] / self.alpha[visible][:, np.newaxis]
        out[visible, :3] = np.clip(np.floor(rgb + 0.5), 0, 255).astype(np.uint8)
        out[:, :, 3] = alpha_byte
        return out


def harden_alpha(raster: np.ndarray) -> np.ndarray:
    """Force alpha to exactly 0 or 255 in place; transparent pixels lose their colour."""
    alpha = raster[:, :, 3]
    transparent = alpha == 0
    raster[transparent, :3] = 0
    alpha[~transparent] = 255
    return raster


def composite(dots: Iterable[DotDescriptor], width: int, height: int, alpha_mode: AlphaMode) -> np.ndarray:
    canvas = Canvas(width, height)
    for dot in dots:
        canvas.draw(dot)

    raster = canvas.to_rgba()
    if AlphaMode(alpha_mode) == AlphaMode.BINARY:
        harden_alpha(raster)
    return raster
