from __future__ import annotations

"""
Per-tile colour frequency tables over sampled working colours.

Colours are packed 0xRRGGBB ints. Each histogram is ordered by descending
count, ties by ascending packed value, so equal inputs give equal tables.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .core_types import BoolMask, TileHistogram
from .sampling import iter_tiles, sample_step, sample_tile
from .utils import ProgressCallback


@dataclass(frozen=True)
class TileStats:
    """Histogram for one tile plus its raster position."""

    tx: int
    ty: int
    raster: int  # ty * tiles_x + tx
    histogram: TileHistogram

    @property
    def distinct(self) -> int:
        return len(self.histogram)

    @property
    def colours(self) -> List[int]:
        return [c for c, _n in self.histogram]


def tile_histogram(colours: np.ndarray) -> TileHistogram:
    """Frequency table for a 1-D array of packed colours."""
    if colours.size == 0:
        return []
    uniq, counts = np.unique(colours, return_counts=True)
    order = np.lexsort((uniq, -counts))
    return [(int(uniq[i]), int(counts[i])) for i in order.tolist()]


def build_tile_histograms(
    packed: np.ndarray,
    eligible: BoolMask,
    tile_size: int,
    fraction: float,
    *,
    progress: Optional[ProgressCallback] = None,
) -> List[TileStats]:
    """
    Build one TileStats per tile, in raster order.

    Args:
      packed   : int64 [H,W] packed working colours
      eligible : bool [H,W]; False pixels (forced transparent) are never sampled
      tile_size: tile edge in pixels
      fraction : sampling fraction in (0, 1]
      progress : optional callback receiving tiles done
    """
    height, width = packed.shape
    step = sample_step(fraction)
    out: List[TileStats] = []
    tiles_x = -(-width // tile_size)
    for tx, ty, (x0, y0, x1, y1) in iter_tiles(width, height, tile_size):
        tile_colours = packed[y0:y1, x0:x1].reshape(-1)
        picks = sample_tile(eligible[y0:y1, x0:x1], step)
        out.append(
            TileStats(tx, ty, ty * tiles_x + tx, tile_histogram(tile_colours[picks]))
        )
        if progress is not None:
            progress(len(out))
    return out


__all__ = ["TileStats", "tile_histogram", "build_tile_histograms"]
