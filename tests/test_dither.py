import numpy as np
import pytest

from tiled_palette_quant.channel import channel_lut, quantize_array
from tiled_palette_quant.core_types import DITHER_PATTERNS
from tiled_palette_quant.dither import (
    dither_diffusion,
    dither_ordered,
    pattern_offsets,
    pattern_unit_offsets,
)


def _gradient(height=16, width=32):
    x = np.linspace(0, 255, width)
    row = np.stack([x, x[::-1], np.full_like(x, 90.0)], axis=-1)
    return np.tile(row, (height, 1, 1)).round().astype(np.uint8)


def test_diag2_offsets():
    assert pattern_unit_offsets("diag2").tolist() == [
        [-0.375, 0.125],
        [0.375, -0.125],
    ]


@pytest.mark.parametrize("pattern", DITHER_PATTERNS)
def test_pattern_offsets_are_zero_mean_and_within_half_step(pattern):
    unit = pattern_unit_offsets(pattern)
    assert abs(float(unit.mean())) < 1e-12
    assert np.all(np.abs(unit) < 0.5)


def test_unknown_pattern_raises():
    with pytest.raises(ValueError):
        pattern_unit_offsets("spiral")


def test_pattern_offsets_scale_with_weight_and_tile():
    full = pattern_offsets("vert2", 3, 5, 1, 1.0)
    half = pattern_offsets("vert2", 3, 5, 1, 0.5)
    assert full.shape == (3, 5)
    assert np.allclose(half, full / 2)
    assert np.allclose(full[0], [-63.75, 63.75, -63.75, 63.75, -63.75])


def test_ordered_with_zero_weight_is_plain_quantization():
    img = _gradient()
    assert np.array_equal(dither_ordered(img, 3, "diag4", 0.0), quantize_array(img, 3))


def test_ordered_mixes_levels_on_flat_grey():
    img = np.full((4, 4, 3), 128, dtype=np.uint8)
    out = dither_ordered(img, 1, "diag4", 1.0)
    # ranks 8..15 push 128 over the 1-bit midpoint
    assert int((out[..., 0] == 255).sum()) == 8
    assert set(np.unique(out).tolist()) == {0, 255}


@pytest.mark.parametrize("pattern", DITHER_PATTERNS)
def test_dithered_values_stay_on_the_channel_grid(pattern):
    img = _gradient()
    grid = set(channel_lut(3).tolist())
    for out in (
        dither_ordered(img, 3, pattern, 1.0),
        dither_diffusion(img, 3, pattern, 1.0),
    ):
        assert out.dtype == np.uint8 and out.shape == img.shape
        assert set(np.unique(out).tolist()) <= grid


def test_diffusion_with_zero_weight_is_plain_quantization():
    img = _gradient()
    flat = quantize_array(img, 2)
    assert np.array_equal(dither_diffusion(img, 2, "diag4", 0.0), flat)


def test_diffusion_roughly_preserves_mean():
    img = np.full((16, 16, 3), 100, dtype=np.uint8)
    out = dither_diffusion(img, 1, "diag2", 1.0)
    assert abs(float(out.mean()) - 100.0) < 30.0
    assert set(np.unique(out).tolist()) == {0, 255}


def test_skipped_pixels_are_quantized_plainly():
    img = _gradient()
    skip = np.zeros(img.shape[:2], dtype=bool)
    skip[:, ::3] = True
    out = dither_diffusion(img, 2, "diag4", 1.0, skip=skip)
    plain = quantize_array(img, 2)
    assert np.array_equal(out[skip], plain[skip])


def test_diffusion_reports_rows():
    rows = []
    dither_diffusion(_gradient(5, 4), 3, "diag4", 1.0, progress=rows.append)
    assert rows == [1, 2, 3, 4, 5]
