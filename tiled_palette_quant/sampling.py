from __future__ import annotations

"""
Tile geometry and deterministic per-tile pixel sampling.

Exports:
- tile_grid(width, height, tile_size) -> (tiles_x, tiles_y)
- tile_bounds(tx, ty, tile_size, width, height) -> (x0, y0, x1, y1)
- sample_step(fraction) -> int
- sample_tile(eligible, step) -> flat positions within the tile

Notes:
- Tiles cover the image in raster order; edge tiles are clipped, not padded.
- Sampling walks eligible pixels in raster order within the tile and keeps
  every step-th one starting with the first, so any tile with at least one
  eligible pixel yields at least one sample.
"""

import math
from typing import Iterator, Tuple

import numpy as np

from .core_types import BoolMask


def tile_grid(width: int, height: int, tile_size: int) -> Tuple[int, int]:
    """Number of tiles across and down (ceil division)."""
    return (-(-int(width) // tile_size), -(-int(height) // tile_size))


def tile_bounds(
    tx: int, ty: int, tile_size: int, width: int, height: int
) -> Tuple[int, int, int, int]:
    """Pixel rectangle [x0, x1) x [y0, y1) covered by tile (tx, ty)."""
    x0 = tx * tile_size
    y0 = ty * tile_size
    return (x0, y0, min(x0 + tile_size, width), min(y0 + tile_size, height))


def iter_tiles(
    width: int, height: int, tile_size: int
) -> Iterator[Tuple[int, int, Tuple[int, int, int, int]]]:
    """Yield (tx, ty, bounds) in raster order."""
    tiles_x, tiles_y = tile_grid(width, height, tile_size)
    for ty in range(tiles_y):
        for tx in range(tiles_x):
            yield tx, ty, tile_bounds(tx, ty, tile_size, width, height)


def sample_step(fraction: float) -> int:
    """ceil(1 / fraction), tolerant of float noise (0.1 -> 10, not 11)."""
    return max(1, int(math.ceil(1.0 / float(fraction) - 1e-9)))


def sample_tile(eligible: BoolMask, step: int) -> np.ndarray:
    """Flat raster positions of the sampled pixels within one tile."""
    flat = np.flatnonzero(eligible.reshape(-1))
    return flat[:: max(1, int(step))]


__all__ = ["tile_grid", "tile_bounds", "iter_tiles", "sample_step", "sample_tile"]
