import numpy as np
import pytest

from compositor import Canvas, composite, coverage_mask, harden_alpha
from halftone_types import AlphaMode, DotDescriptor, DotShape


def dot(cx, cy, r, shape=DotShape.CIRCLE, rgb=(0, 0, 0), opacity=1.0, rx=None, ry=None):
    return DotDescriptor(
        cx=cx,
        cy=cy,
        radius=r,
        rx=rx if rx is not None else r,
        ry=ry if ry is not None else r,
        shape=shape,
        rgb=rgb,
        opacity=opacity,
    )


def test_empty_canvas_is_transparent():
    out = composite([], 8, 6, AlphaMode.AVERAGE)
    assert out.shape == (6, 8, 4)
    assert out.dtype == np.uint8
    np.testing.assert_array_equal(out, 0)


def test_circle_is_opaque_inside_and_clear_outside():
    out = composite([dot(10.0, 10.0, 5.0, rgb=(200, 10, 20))], 20, 20, AlphaMode.AVERAGE)
    assert tuple(out[10, 10]) == (200, 10, 20, 255)
    assert out[0, 0, 3] == 0
    assert out[10, 17, 3] == 0


def test_average_mode_keeps_antialiased_edges():
    out = composite([dot(10.0, 10.0, 4.3)], 20, 20, AlphaMode.AVERAGE)
    alpha = out[:, :, 3]
    partial = (alpha > 0) & (alpha < 255)
    assert partial.any()


def test_binary_mode_alpha_is_zero_or_opaque():
    dots = [
        dot(5.3, 5.7, 3.1, rgb=(10, 200, 30), opacity=0.4),
        dot(12.0, 6.0, 4.0, shape=DotShape.ELLIPSE, rx=4.8, ry=3.4, opacity=0.7),
        dot(20.5, 12.5, 2.2, shape=DotShape.SQUARE, rgb=(255, 255, 0), opacity=0.25),
    ]
    out = composite(dots, 24, 18, AlphaMode.BINARY)
    assert set(np.unique(out[:, :, 3])) <= {0, 255}
    transparent = out[:, :, 3] == 0
    np.testing.assert_array_equal(out[transparent, :3], 0)


def test_square_covers_whole_pixels_exactly():
    out = composite([dot(5.0, 5.0, 5.0, shape=DotShape.SQUARE)], 12, 12, AlphaMode.AVERAGE)
    np.testing.assert_array_equal(out[:10, :10, 3], 255)
    np.testing.assert_array_equal(out[10:, :, 3], 0)
    np.testing.assert_array_equal(out[:, 10:, 3], 0)


def test_overlapping_dots_blend_source_over():
    dots = [
        dot(5.0, 5.0, 5.0, shape=DotShape.SQUARE, rgb=(255, 0, 0), opacity=0.5),
        dot(10.0, 5.0, 5.0, shape=DotShape.SQUARE, rgb=(0, 0, 255), opacity=0.5),
    ]
    out = composite(dots, 20, 10, AlphaMode.AVERAGE)
    assert tuple(out[5, 2]) == (255, 0, 0, 128)
    assert tuple(out[5, 12]) == (0, 0, 255, 128)
    assert tuple(out[5, 7]) == (85, 0, 170, 191)


def test_ellipse_is_wider_than_tall():
    out = composite(
        [dot(15.0, 15.0, 5.0, shape=DotShape.ELLIPSE, rx=6.0, ry=4.25)], 30, 30, AlphaMode.BINARY
    )
    ys, xs = np.nonzero(out[:, :, 3])
    assert xs.max() - xs.min() > ys.max() - ys.min()


def test_dots_are_clipped_to_canvas():
    out = composite([dot(0.0, 0.0, 6.0), dot(9.5, 9.5, 6.0)], 10, 10, AlphaMode.BINARY)
    assert out.shape == (10, 10, 4)
    assert out[0, 0, 3] == 255
    assert out[9, 9, 3] == 255


def test_dot_fully_outside_canvas_is_ignored():
    canvas = Canvas(10, 10)
    canvas.draw(dot(-50.0, -50.0, 3.0))
    np.testing.assert_array_equal(canvas.to_rgba(), 0)


def test_zero_opacity_dot_draws_nothing():
    out = composite([dot(5.0, 5.0, 4.0, opacity=0.0)], 10, 10, AlphaMode.AVERAGE)
    np.testing.assert_array_equal(out, 0)


@pytest.mark.parametrize("shape", list(DotShape))
def test_coverage_mask_is_bounded_and_cached(shape):
    n, mask = coverage_mask(shape, 3.5, 2.5, 0.5, 0.5)
    assert mask.shape == (2 * n + 1, 2 * n + 1)
    assert mask.min() >= 0.0
    assert mask.max() <= 1.0
    assert mask[n, n] == pytest.approx(1.0)
    assert coverage_mask(shape, 3.5, 2.5, 0.5, 0.5)[1] is mask
    assert not mask.flags.writeable


def test_circle_mask_area_matches_geometry():
    _, mask = coverage_mask(DotShape.CIRCLE, 6.0, 6.0, 0.5, 0.5)
    assert mask.sum() == pytest.approx(np.pi * 36, rel=0.02)


def test_harden_alpha():
    raster = np.array([[[10, 20, 30, 0], [10, 20, 30, 1], [10, 20, 30, 254]]], dtype=np.uint8)
    harden_alpha(raster)
    np.testing.assert_array_equal(raster[0, 0], [0, 0, 0, 0])
    np.testing.assert_array_equal(raster[0, 1], [10, 20, 30, 255])
    np.testing.assert_array_equal(raster[0, 2], [10, 20, 30, 255])


@pytest.mark.parametrize("shape", [DotShape.CIRCLE, DotShape.ELLIPSE])
def test_sub_pixel_dots_cover_their_true_area(shape):
    _, mask = coverage_mask(shape, 0.15, 0.15, 0.5, 0.5)
    assert mask.sum() == pytest.approx(np.pi * 0.15 * 0.15, rel=1e-3)
    assert mask.max() < 0.1
