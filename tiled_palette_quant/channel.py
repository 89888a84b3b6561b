from __future__ import annotations

"""
Channel quantizer: reduce 8-bit channels to a hardware bit depth.

step  = 255 / (2^bits - 1)
level = floor(v / step + 0.5), clamped to [0, 2^bits - 1]
value = floor(level * step + 0.5)

Rounding is half-up everywhere so scalar, LUT and array paths agree.
"""

import math
from functools import lru_cache
from typing import Sequence

import numpy as np

from .constants import CHANNEL_MAX
from .core_types import RGBTuple


def max_level(bits: int) -> int:
    return (1 << int(bits)) - 1


def channel_step(bits: int) -> float:
    """Distance between adjacent representable 8-bit values."""
    return CHANNEL_MAX / float(max_level(bits))


def channel_level(value: float, bits: int) -> int:
    """Hardware level (0..2^bits-1) nearest to an 8-bit channel value."""
    top = max_level(bits)
    level = int(math.floor(float(value) / channel_step(bits) + 0.5))
    return 0 if level < 0 else top if level > top else level


def level_to_value(level: int, bits: int) -> int:
    """8-bit value represented by a hardware level."""
    return int(math.floor(int(level) * channel_step(bits) + 0.5))


def quantize_channel(value: float, bits: int) -> int:
    """Snap one channel value (any real, clamped) to the bit-depth grid."""
    return level_to_value(channel_level(value, bits), bits)


def quantize_rgb(rgb: Sequence[float], bits: int) -> RGBTuple:
    return (
        quantize_channel(rgb[0], bits),
        quantize_channel(rgb[1], bits),
        quantize_channel(rgb[2], bits),
    )


@lru_cache(maxsize=8)
def _lut(bits: int) -> bytes:
    return bytes(quantize_channel(v, bits) for v in range(CHANNEL_MAX + 1))


def channel_lut(bits: int) -> np.ndarray:
    """256-entry uint8 lookup table for integer input."""
    return np.frombuffer(_lut(int(bits)), dtype=np.uint8)


def quantize_array(arr: np.ndarray, bits: int) -> np.ndarray:
    """
    Vectorised quantizer. uint8 input goes through the LUT; float input
    (dithered values, possibly outside 0..255) is clamped then snapped.
    Returns uint8 with the input's shape.
    """
    if arr.dtype == np.uint8:
        return channel_lut(bits)[arr]
    step = channel_step(bits)
    levels = np.floor(arr.astype(np.float64, copy=False) / step + 0.5)
    levels = np.clip(levels, 0, max_level(bits))
    return np.floor(levels * step + 0.5).astype(np.uint8)


__all__ = [
    "max_level",
    "channel_step",
    "channel_level",
    "level_to_value",
    "quantize_channel",
    "quantize_rgb",
    "channel_lut",
    "quantize_array",
]
