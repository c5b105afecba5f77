# grid_sampler.py
# Splits an RGBA raster into square cells and summarises each cell's ink.

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from halftone_types import CellSummary


@dataclass
class CellGrid:
    """Per-cell statistics for one raster, stored as (rows, cols) arrays."""

    width: int
    height: int
    cell_size: int
    pixel_count: np.ndarray  # (rows, cols) pixels inside the clipped cell
    ink_count: np.ndarray    # (rows, cols) pixels with alpha above threshold
    rgb_sum: np.ndarray      # (rows, cols, 3) channel sums over ink pixels only

    @property
    def rows(self) -> int:
        return self.pixel_count.shape[0]

    @property
    def cols(self) -> int:
        return self.pixel_count.shape[1]

    @property
    def cell_count(self) -> int:
        return self.rows * self.cols

    @property
    def total_ink(self) -> int:
        return int(self.ink_count.sum())

    @property
    def coverage(self) -> np.ndarray:
        return np.clip(self.ink_count / np.maximum(self.pixel_count, 1), 0.0, 1.0)

    @property
    def rgb_mean(self) -> np.ndarray:
        """Rounded average colour of the ink pixels; zero for empty cells."""
        counts = np.maximum(self.ink_count, 1)[..., np.newaxis]
        mean = np.floor(self.rgb_sum / counts + 0.5)
        mean[self.ink_count == 0] = 0
        return mean.astype(np.uint8)

    def cell(self, row: int, col: int) -> CellSummary:
        cs = self.cell_size
        x0, y0 = col * cs, row * cs
        ink = int(self.ink_count[row, col])
        total = int(self.pixel_count[row, col])
        sums = tuple(int(v) for v in self.rgb_sum[row, col])
        if ink > 0:
            rgb = tuple(int(v / ink + 0.5) for v in sums)
        else:
            rgb = (0, 0, 0)
        return CellSummary(
            row=row,
            col=col,
            x0=x0,
            y0=y0,
            x1=min(x0 + cs, self.width),
            y1=min(y0 + cs, self.height),
            pixel_count=total,
            ink_count=ink,
            rgb_sum=sums,
            rgb=rgb,
            coverage=min(1.0, max(0.0, ink / total)) if total else 0.0,
        )

    def __iter__(self) -> Iterator[CellSummary]:
        for row in range(self.rows):
            for col in range(self.cols):
                yield self.cell(row, col)

    def non_empty(self) -> Iterator[CellSummary]:
        """Row-major summaries of cells that hold at least one ink pixel."""
        for row, col in zip(*np.nonzero(self.ink_count)):
            yield self.cell(int(row), int(col))


def grid_shape(width: int, height: int, cell_size: int) -> tuple:
    """(rows, cols) of the grid, counting partial cells on the right/bottom edge."""
    return -(-height // cell_size), -(-width // cell_size)


def estimate_cells(width: int, height: int, cell_size: int) -> int:
    rows, cols = grid_shape(width, height, cell_size)
    return rows * cols


def ink_mask(raster: np.ndarray, alpha_threshold: int) -> np.ndarray:
    # Strict comparison: alpha == threshold is background
    return raster[:, :, 3] > alpha_threshold


def sample_grid(raster: np.ndarray, cell_size: int, alpha_threshold: int) -> CellGrid:
    """Summarise every cell of an (H, W, 4) uint8 raster.

    Colour sums only include ink pixels. Averaging over the whole cell would
    pull in the colour of near-transparent background and wash the dots out.
    """
    if raster.ndim != 3 or raster.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) raster, got shape {raster.shape}")
    if cell_size < 1:
        raise ValueError("cell_size must be positive")

    height, width = raster.shape[:2]
    cs = cell_size
    rows, cols = grid_shape(width, height, cs)
    pad = ((0, rows * cs - height), (0, cols * cs - width))

    mask = ink_mask(raster, alpha_threshold)
    ink_rgb = np.where(mask[..., np.newaxis], raster[:, :, :3], 0).astype(np.uint8)

    # Reshape into (rows, cell_h, cols, cell_w) and reduce over the cell axes
    mask_cells = np.pad(mask, pad).reshape(rows, cs, cols, cs)
    ink_count = mask_cells.sum(axis=(1, 3), dtype=np.int64)

    rgb_cells = np.pad(ink_rgb, pad + ((0, 0),)).reshape(rows, cs, cols, cs, 3)
    rgb_sum = rgb_cells.sum(axis=(1, 3), dtype=np.int64)

    # Edge cells are clipped to the image, so their pixel count is smaller
    col_widths = np.minimum(cs, width - np.arange(cols) * cs)
    row_heights = np.minimum(cs, height - np.arange(rows) * cs)
    pixel_count = np.outer(row_heights, col_widths).astype(np.int64)

    return CellGrid(
        width=width,
        height=height,
        cell_size=cs,
        pixel_count=pixel_count,
        ink_count=ink_count,
        rgb_sum=rgb_sum,
    )
