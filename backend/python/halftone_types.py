# halftone_types.py
# Value objects passed between the halftone stages.

from dataclasses import dataclass, replace
from enum import Enum
from typing import Tuple

# ============ ENUMS ============

class DotShape(str, Enum):
    CIRCLE = "circle"
    SQUARE = "square"
    ELLIPSE = "ellipse"

class AlphaMode(str, Enum):
    BINARY = "binary"    # output alpha hardened to 0/255 (DTF safe)
    AVERAGE = "average"  # dot opacity follows cell coverage

# Darkness-response bounds
MIN_DOT_GAIN = 0.6
MAX_DOT_GAIN = 2.0
MAX_MIN_DOT = 0.6

# Shapes below this radius (pixels) are not drawn
MIN_VISIBLE_RADIUS = 0.15

# Fixed print-friendly aspect for elliptical dots
ELLIPSE_RX_SCALE = 1.2
ELLIPSE_RY_SCALE = 0.85


def clamp(value, low, high):
    return max(low, min(high, value))


# ============ PARAMETERS ============

@dataclass(frozen=True)
class HalftoneParams:
    cell_size: int = 12
    max_width: int = 2000
    dot_shape: DotShape = DotShape.CIRCLE
    dot_gain: float = 1.25
    min_dot: float = 0.18
    alpha_threshold: int = 48
    min_coverage: float = 0.15
    alpha_mode: AlphaMode = AlphaMode.BINARY
    crop_to_content: bool = False
    restore_size: bool = False
    scale_by_coverage: bool = True

    def clamped(self, min_cell: int, max_cell: int, hard_max_width: int) -> "HalftoneParams":
        """Return a copy with every numeric knob forced into its legal range."""
        return replace(
            self,
            cell_size=int(clamp(int(self.cell_size), min_cell, max_cell)),
            max_width=int(clamp(int(self.max_width), 1, hard_max_width)),
            dot_shape=DotShape(self.dot_shape),
            dot_gain=float(clamp(float(self.dot_gain), MIN_DOT_GAIN, MAX_DOT_GAIN)),
            min_dot=float(clamp(float(self.min_dot), 0.0, MAX_MIN_DOT)),
            alpha_threshold=int(clamp(int(self.alpha_threshold), 0, 255)),
            min_coverage=float(clamp(float(self.min_coverage), 0.0, 1.0)),
            alpha_mode=AlphaMode(self.alpha_mode),
        )


# ============ DERIVED PER-REQUEST DATA ============

@dataclass(frozen=True)
class CellSummary:
    row: int
    col: int
    x0: int
    y0: int
    x1: int
    y1: int
    pixel_count: int
    ink_count: int
    rgb_sum: Tuple[int, int, int]
    rgb: Tuple[int, int, int]
    coverage: float

    @property
    def empty(self) -> bool:
        return self.ink_count <= 0

    @property
    def center(self) -> Tuple[float, float]:
        return self.x0 + (self.x1 - self.x0) / 2, self.y0 + (self.y1 - self.y0) / 2


@dataclass(frozen=True)
class DotDescriptor:
    cx: float
    cy: float
    radius: float
    rx: float
    ry: float
    shape: DotShape
    rgb: Tuple[int, int, int]
    opacity: float


@dataclass(frozen=True)
class HalftoneResult:
    png: bytes
    width: int          # processed (working) resolution
    height: int
    output_width: int   # dimensions of the encoded PNG
    output_height: int
    cell_size: int
    cell_count: int
    dot_count: int
    elapsed_ms: int

    def perf(self) -> dict:
        return {
            "ms": self.elapsed_ms,
            "cell_size": self.cell_size,
            "cell_count": self.cell_count,
            "dot_count": self.dot_count,
            "work_width": self.width,
            "work_height": self.height,
            "out_width": self.output_width,
            "out_height": self.output_height,
        }
