"""
Dithering applied before channel quantization.

Provides:
  dither_ordered(img_rgb, bits, pattern, weight) -> U8Image
    "fast" mode: tiled pattern offset, then quantize.

  dither_diffusion(img_rgb, bits, pattern, weight, *, skip=None, progress=None) -> U8Image
    "slow" mode: pattern offset plus raster-order Floyd-Steinberg diffusion.

  pattern_offsets(pattern, height, width, bits, weight) -> float64 [H,W]
"""

from .diffusion import dither_diffusion
from .ordered import dither_ordered, pattern_offsets, pattern_unit_offsets

__all__ = [
    "dither_ordered",
    "dither_diffusion",
    "pattern_offsets",
    "pattern_unit_offsets",
]
