# dot_geometry.py
# Maps cell summaries to dot descriptors through the darkness-response curve.

import math
from typing import Iterable, List, Optional

from halftone_types import (
    ELLIPSE_RX_SCALE,
    ELLIPSE_RY_SCALE,
    MIN_VISIBLE_RADIUS,
    AlphaMode,
    CellSummary,
    DotDescriptor,
    DotShape,
    HalftoneParams,
    clamp,
)


def luminance255(r: float, g: float, b: float) -> float:
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def darkness(rgb) -> float:
    """0.0 for white, 1.0 for black."""
    return clamp(1.0 - luminance255(*rgb) / 255.0, 0.0, 1.0)


def apply_gain(value: float, dot_gain: float) -> float:
    # gain > 1 pushes midtones darker, gain < 1 lightens them
    return value ** (1.0 / dot_gain)


def dot_fraction(rgb, dot_gain: float, min_dot: float) -> float:
    curved = apply_gain(darkness(rgb), dot_gain)
    return clamp(min_dot + (1.0 - min_dot) * curved, 0.0, 1.0)


def dot_radius(cell: CellSummary, params: HalftoneParams) -> float:
    """Base radius for a cell, before any shape-specific stretching."""
    half = params.cell_size / 2.0
    radius = half * dot_fraction(cell.rgb, params.dot_gain, params.min_dot)
    if params.scale_by_coverage:
        # Partially covered edge cells shrink instead of overshooting the silhouette
        radius *= math.sqrt(clamp(cell.coverage, 0.0, 1.0))
    return clamp(radius, 0.0, half)


def plan_dot(cell: CellSummary, params: HalftoneParams) -> Optional[DotDescriptor]:
    """Dot for one cell, or None when the cell should stay empty."""
    if cell.empty or cell.coverage < params.min_coverage:
        return None

    radius = dot_radius(cell, params)
    if radius < MIN_VISIBLE_RADIUS:
        return None

    if params.alpha_mode == AlphaMode.AVERAGE:
        opacity = clamp(cell.coverage, 0.0, 1.0)
    else:
        opacity = 1.0

    shape = DotShape(params.dot_shape)
    if shape == DotShape.ELLIPSE:
        rx, ry = radius * ELLIPSE_RX_SCALE, radius * ELLIPSE_RY_SCALE
    else:
        # squares use the radius as half their side
        rx = ry = radius

    cx, cy = cell.center
    return DotDescriptor(
        cx=cx,
        cy=cy,
        radius=radius,
        rx=rx,
        ry=ry,
        shape=shape,
        rgb=cell.rgb,
        opacity=opacity,
    )


def plan_dots(cells: Iterable[CellSummary], params: HalftoneParams) -> List[DotDescriptor]:
    dots = []
    for cell in cells:
        dot = plan_dot(cell, params)
        if dot is not None:
            dots.append(dot)
    return dots
