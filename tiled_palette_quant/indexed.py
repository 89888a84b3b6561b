from __future__ import annotations

"""
Indexed image builder and result views.

Every pixel takes the nearest colour of its tile's block (Euclidean RGB, ties
lowest slot) and is written as the global index block * cpp + slot.
Forced-transparent pixels are written as index 0.
"""

from typing import List

import numpy as np

from .constants import NEAREST_CHUNK
from .core_types import (
    BoolMask,
    IndexBuffer,
    PaletteBlock,
    QuantizedResult,
    RGBTuple,
    U8Image,
    U8RGBA,
    pack_rgb_array,
)
from .palette.color_zero import ColorZeroPolicy

_CHANNEL_SHIFTS = np.array([16, 8, 0], dtype=np.int64)


def pixel_block_map(
    tile_blocks: np.ndarray, tile_size: int, height: int, width: int
) -> np.ndarray:
    """Expand a (tiles_y, tiles_x) block grid to one block id per pixel."""
    grid = np.repeat(np.repeat(tile_blocks, tile_size, axis=0), tile_size, axis=1)
    return grid[:height, :width]


def candidate_slots(block: PaletteBlock, policy: ColorZeroPolicy) -> np.ndarray:
    """Slots an opaque pixel in this block may map to."""
    lo = 0 if policy.slot_zero_selectable else 1
    slots = np.arange(lo, block.used, dtype=np.int64)
    if slots.size == 0:
        slots = np.zeros(1, dtype=np.int64)
    return slots


def nearest_slots(
    pixels: np.ndarray,
    palette: np.ndarray,
    slots: np.ndarray,
    chunk: int = NEAREST_CHUNK,
) -> np.ndarray:
    """
    Nearest candidate slot for each pixel, resolved `chunk` rows at a time.

    Args:
      pixels  : int (N,3)
      palette : int (cpp,3) block colours
      slots   : candidate slot ids, ascending
      chunk   : rows per batch
    """
    cand = palette[slots]
    out = np.empty(pixels.shape[0], dtype=np.int64)
    for i in range(0, pixels.shape[0], chunk):
        diff = pixels[i : i + chunk, None, :] - cand[None, :, :]
        dist = np.einsum("nkc,nkc->nk", diff, diff)
        out[i : i + chunk] = slots[np.argmin(dist, axis=1)]
    return out


def build_indices(
    working: U8Image,
    transparent: BoolMask,
    tile_blocks: np.ndarray,
    tile_size: int,
    blocks: List[PaletteBlock],
    policy: ColorZeroPolicy,
) -> IndexBuffer:
    """Global index per pixel, uint8 (H,W). Each distinct colour is resolved once."""
    height, width, _ = working.shape
    cpp = policy.colors_per_palette
    out = np.zeros((height, width), dtype=np.uint8)

    per_pixel = pixel_block_map(tile_blocks, tile_size, height, width)
    opaque = ~transparent
    packed = pack_rgb_array(working)
    for bid, block in enumerate(blocks):
        sel = (per_pixel == bid) & opaque
        if not sel.any():
            continue
        uniq, inverse = np.unique(packed[sel], return_inverse=True)
        colours = (uniq[:, None] >> _CHANNEL_SHIFTS) & 0xFF
        palette = np.array(block.colors, dtype=np.int64)
        slots = nearest_slots(colours, palette, candidate_slots(block, policy))
        out[sel] = (bid * cpp + slots[inverse.reshape(-1)]).astype(np.uint8)
    return out


# Views


def palettes_as_lists(result: QuantizedResult) -> List[List[RGBTuple]]:
    """Blocks as plain lists of RGB tuples (all cpp slots)."""
    return [list(b.colors) for b in result.blocks]


def render_preview(result: QuantizedResult) -> U8RGBA:
    """Reconstruct the quantized image as RGBA; transparent pixels get alpha 0."""
    pal = np.array(result.global_palette(), dtype=np.uint8).reshape(-1, 3)
    rgba = np.empty((result.height, result.width, 4), dtype=np.uint8)
    rgba[..., :3] = pal[result.indices.astype(np.intp)]
    rgba[..., 3] = np.where(result.transparent, 0, 255).astype(np.uint8)
    return rgba


__all__ = [
    "pixel_block_map",
    "candidate_slots",
    "nearest_slots",
    "build_indices",
    "palettes_as_lists",
    "render_preview",
]
