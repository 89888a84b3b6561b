from __future__ import annotations

"""
Error-diffusion ("slow") dithering.

Floyd-Steinberg in raster scan order on top of the ordered offset. Each
channel's residual (diffused value minus quantized value, excluding the
pattern offset) is scaled by the dither weight, clamped to one quantization
step, and pushed to unvisited neighbours. Skipped pixels (forced transparent)
neither receive nor emit error.

The inner loop runs on plain Python lists; per-element NumPy indexing is
several times slower at this granularity.
"""

import math
from typing import List, Optional

import numpy as np

from ..channel import channel_step, max_level
from ..constants import KERNEL_FS
from ..core_types import BoolMask, U8Image
from ..utils import ProgressCallback
from .ordered import pattern_offsets


def dither_diffusion(
    img_rgb: U8Image,
    bits: int,
    pattern: str,
    weight: float,
    *,
    skip: Optional[BoolMask] = None,
    progress: Optional[ProgressCallback] = None,
) -> U8Image:
    """
    Quantize with ordered offset plus Floyd-Steinberg diffusion.

    Args:
      img_rgb  : uint8 [H,W,3]
      bits     : bits per channel
      pattern  : ordered pattern name
      weight   : 0..1, scales both the offset and the diffused residual
      skip     : optional bool [H,W]; True pixels are quantized plainly and
                 excluded from diffusion
      progress : optional callback receiving rows done (1..H)

    Returns:
      uint8 [H,W,3]
    """
    height, width, _ = img_rgb.shape
    step = channel_step(bits)
    top = max_level(bits)
    w = float(weight)

    offsets: List[List[float]] = pattern_offsets(
        pattern, height, width, bits, w
    ).tolist()
    src: List[List[List[float]]] = img_rgb.astype(np.float64).tolist()
    err: List[List[List[float]]] = np.zeros((height, width, 3)).tolist()
    skip_rows = skip.tolist() if skip is not None else None

    out = np.empty((height, width, 3), dtype=np.uint8)

    def snap(v: float) -> float:
        level = math.floor(v / step + 0.5)
        level = 0 if level < 0 else top if level > top else level
        return float(math.floor(level * step + 0.5))

    for y in range(height):
        row_src = src[y]
        row_err = err[y]
        row_off = offsets[y]
        row_skip = skip_rows[y] if skip_rows is not None else None
        row_out: List[List[int]] = []

        for x in range(width):
            px = row_src[x]
            if row_skip is not None and row_skip[x]:
                row_out.append([int(snap(px[0])), int(snap(px[1])), int(snap(px[2]))])
                continue

            e = row_err[x]
            off = row_off[x]
            quantized = [0, 0, 0]
            residual = [0.0, 0.0, 0.0]
            for c in range(3):
                v = px[c] + e[c]
                q = snap(v + off)
                quantized[c] = int(q)
                r = (v - q) * w
                residual[c] = -step if r < -step else step if r > step else r
            row_out.append(quantized)

            if residual[0] == 0.0 and residual[1] == 0.0 and residual[2] == 0.0:
                continue
            for dx, dy, kw in KERNEL_FS:
                nx = x + dx
                ny = y + dy
                if not (0 <= nx < width and ny < height):
                    continue
                if skip_rows is not None and skip_rows[ny][nx]:
                    continue
                tgt = err[ny][nx]
                tgt[0] += residual[0] * kw
                tgt[1] += residual[1] * kw
                tgt[2] += residual[2] * kw

        out[y] = np.asarray(row_out, dtype=np.uint8)
        if progress is not None:
            progress(y + 1)

    return out


__all__ = ["dither_diffusion"]
