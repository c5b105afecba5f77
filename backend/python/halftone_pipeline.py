# halftone_pipeline.py
# Orchestrates decode -> sample -> dot geometry -> composite -> encode.

import time
import logging
from typing import Optional

from admission import AdmissionGate
from compositor import composite
from dot_geometry import plan_dots
from grid_sampler import estimate_cells, sample_grid
from halftone_config import HalftoneSettings
from halftone_errors import (
    FullyTransparentError,
    HalftoneError,
    InternalRenderError,
    SettingsTooHeavyError,
)
from halftone_types import HalftoneParams, HalftoneResult
import image_codec

log = logging.getLogger(__name__)


def suggest_cell_size(width: int, height: int, min_cell: int, max_cell: int, max_cells: int) -> Optional[int]:
    """Smallest legal cell size whose grid fits under max_cells, if any."""
    for cs in range(min_cell, max_cell + 1):
        if estimate_cells(width, height, cs) <= max_cells:
            return cs
    return None


class HalftonePipeline:
    def __init__(self, settings: Optional[HalftoneSettings] = None, gate: Optional[AdmissionGate] = None):
        self.settings = settings or HalftoneSettings()
        self.gate = gate or AdmissionGate(self.settings.max_concurrent_jobs)

    def effective_params(self, params: HalftoneParams) -> HalftoneParams:
        s = self.settings
        return params.clamped(s.min_cell, s.max_cell, s.hard_max_width)

    def render(self, data: bytes, params: HalftoneParams) -> HalftoneResult:
        """Render one request. Raises a HalftoneError subclass on any failure."""
        with self.gate.slot():
            return self.process(data, params)

    def process(self, data: bytes, params: HalftoneParams) -> HalftoneResult:
        """Same as render() for callers that already hold a gate slot."""
        try:
            return self._render(data, params)
        except HalftoneError:
            raise
        except Exception as e:
            log.exception("halftone render failed")
            raise InternalRenderError() from e

    def _render(self, data: bytes, params: HalftoneParams) -> HalftoneResult:
        s = self.settings
        started = time.perf_counter()
        params = self.effective_params(params)

        img = image_codec.open_image(data, s.max_upload_bytes, s.max_image_pixels)

        # Judged on the decoded pixels, before any resampling
        bbox = image_codec.content_bbox(img, params.alpha_threshold)
        if bbox is None:
            raise FullyTransparentError(
                "Image has no visible pixels above the alpha threshold",
                {"alpha_threshold": params.alpha_threshold},
            )
        if params.crop_to_content:
            img = img.crop(bbox)

        source_width, source_height = img.size
        img = image_codec.fit_width(img, params.max_width)
        width, height = img.size

        cs = params.cell_size
        cell_count = estimate_cells(width, height, cs)
        if cell_count > s.max_cells_estimate:
            suggested = suggest_cell_size(width, height, s.min_cell, s.max_cell, s.max_cells_estimate)
            raise SettingsTooHeavyError(
                f"Settings too heavy (estimated cells={cell_count}). Increase cell size or reduce max width.",
                {
                    "estimated_cells": cell_count,
                    "max_cells": s.max_cells_estimate,
                    "cell_size": cs,
                    "width": width,
                    "height": height,
                    "suggested_cell_size": suggested,
                },
            )

        raster = image_codec.to_raster(img)
        grid = sample_grid(raster, cs, params.alpha_threshold)
        if grid.total_ink == 0:
            log.warning("all ink lost in resize to %dx%d, output is empty", width, height)

        dots = plan_dots(grid.non_empty(), params)
        out = composite(dots, width, height, params.alpha_mode)

        if params.restore_size:
            out = image_codec.upscale_nearest(out, source_width, source_height)

        png = image_codec.encode_png(out)
        elapsed_ms = int(round((time.perf_counter() - started) * 1000))

        log.info(
            "halftone %dx%d cell=%d cells=%d dots=%d shape=%s mode=%s in %dms",
            width, height, cs, grid.cell_count, len(dots),
            params.dot_shape.value, params.alpha_mode.value, elapsed_ms,
        )

        return HalftoneResult(
            png=png,
            width=width,
            height=height,
            output_width=out.shape[1],
            output_height=out.shape[0],
            cell_size=cs,
            cell_count=grid.cell_count,
            dot_count=len(dots),
            elapsed_ms=elapsed_ms,
        )
