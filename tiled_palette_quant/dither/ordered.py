from __future__ import annotations

"""
Ordered ("fast") dithering.

A small rank matrix is tiled over the image; each rank becomes a zero-mean
offset of up to half a quantization step, scaled by the dither weight, and is
added to every channel before the channel quantizer runs.
"""

from functools import lru_cache

import numpy as np

from ..channel import channel_step, quantize_array
from ..constants import DITHER_MATRICES
from ..core_types import U8Image


@lru_cache(maxsize=len(DITHER_MATRICES))
def pattern_unit_offsets(pattern: str) -> np.ndarray:
    """Offsets in units of one quantization step, range (-0.5, 0.5)."""
    try:
        ranks = np.array(DITHER_MATRICES[pattern], dtype=np.float64)
    except KeyError as exc:
        raise ValueError(f"unknown dither pattern: {pattern}") from exc
    n = float(ranks.size)
    out = (ranks + 0.5) / n - 0.5
    out.setflags(write=False)
    return out


def pattern_offsets(
    pattern: str, height: int, width: int, bits: int, weight: float
) -> np.ndarray:
    """Per-pixel additive offsets (float64, shape (H, W)) in 8-bit units."""
    unit = pattern_unit_offsets(pattern)
    ph, pw = unit.shape
    reps = (-(-height // ph), -(-width // pw))
    tiled = np.tile(unit, reps)[:height, :width]
    return tiled * (channel_step(bits) * float(weight))


def dither_ordered(
    img_rgb: U8Image, bits: int, pattern: str, weight: float
) -> U8Image:
    """Add the pattern offset to each channel and quantize. Returns uint8 (H,W,3)."""
    height, width, _ = img_rgb.shape
    if weight <= 0.0:
        return quantize_array(img_rgb, bits)
    offsets = pattern_offsets(pattern, height, width, bits, weight)
    perturbed = img_rgb.astype(np.float64) + offsets[..., None]
    return quantize_array(perturbed, bits)


__all__ = ["pattern_unit_offsets", "pattern_offsets", "dither_ordered"]
