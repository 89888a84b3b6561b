import numpy as np
import pytest

from tiled_palette_quant.core_types import (
    PaletteBlock,
    QuantizationSettings,
    QuantizedResult,
    SourceImage,
    TileAssignment,
)
from tiled_palette_quant.indexed import pixel_block_map


def solid_rgb(height, width, rgb):
    return np.tile(np.array(rgb, dtype=np.uint8), (height, width, 1))


@pytest.fixture
def solid_image():
    return SourceImage.from_array(solid_rgb(16, 16, (200, 100, 50)))


@pytest.fixture
def gradient_image():
    """16x16 image with 256 distinct source colours."""
    y, x = np.mgrid[0:16, 0:16]
    arr = np.stack([x * 16, y * 16, np.full_like(x, 128)], axis=-1).astype(np.uint8)
    return SourceImage.from_array(arr)


@pytest.fixture
def noisy_image():
    rng = np.random.default_rng(1234)
    arr = rng.integers(0, 201, size=(24, 40, 3), dtype=np.uint8)
    return SourceImage.from_array(arr)


@pytest.fixture
def small_result():
    """Hand-built 4x2 result: two 2x2 tiles, two blocks of 4 slots."""
    settings = QuantizationSettings(
        tile_size=2, palette_count=2, colors_per_palette=4, bits_per_channel=8
    )
    blocks = (
        PaletteBlock(((255, 0, 0), (0, 255, 0), (0, 0, 0), (0, 0, 0)), 2),
        PaletteBlock(((0, 0, 255), (255, 255, 255), (0, 0, 0), (0, 0, 0)), 2),
    )
    tiles = TileAssignment(2, 2, 1, np.array([[0, 1]], dtype=np.uint8))
    indices = np.array([[0, 1, 4, 5], [1, 0, 5, 4]], dtype=np.uint8)
    return QuantizedResult(
        width=4,
        height=2,
        settings=settings,
        blocks=blocks,
        tile_assignment=tiles,
        indices=indices,
        transparent=np.zeros((2, 4), dtype=bool),
    )


def assert_tile_coverage(result):
    """Every non-transparent pixel indexes a used slot of its tile's block."""
    cpp = result.colors_per_palette
    ta = result.tile_assignment
    per_pixel = pixel_block_map(ta.blocks, ta.tile_size, result.height, result.width)
    opaque = ~result.transparent
    idx = result.indices.astype(np.int64)
    assert np.all(idx[opaque] // cpp == per_pixel[opaque])
    used = np.array([b.used for b in result.blocks])
    assert np.all(idx[opaque] % cpp < used[idx[opaque] // cpp])
    assert np.all(idx[result.transparent] == 0)
