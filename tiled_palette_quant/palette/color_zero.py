from __future__ import annotations

"""
Colour-zero policy: what slot 0 of every block means and which pixels skip
palette building altogether.

  unique                     slot 0 is an ordinary colour (the block's most
                             frequent); every slot is budget
  shared                     slot 0 is color_zero_value in every block; opaque
                             pixels may still map to it; it costs no budget
  transparentFromTransparent alpha == 0 pixels become index 0; slot 0 is black
                             and never chosen for opaque pixels
  transparentFromColor       pixels whose source RGB equals color_zero_value
                             become index 0; slot 0 holds that colour and is
                             never chosen for other pixels
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..constants import TRANSPARENT_SLOT_COLOR, UNUSED_SLOT_COLOR
from ..core_types import (
    BoolMask,
    PaletteBlock,
    QuantizationSettings,
    QuantizedResult,
    RGBTuple,
    SourceImage,
    pack_rgb,
    unpack_rgb,
)


@dataclass(frozen=True)
class ColorZeroPolicy:
    behavior: str
    colors_per_palette: int
    budget: int  # slots available to tile colours
    slot_zero: Optional[RGBTuple]  # fixed slot-0 colour, None for unique
    free_colour: Optional[int]  # packed colour that never consumes budget
    slot_zero_selectable: bool  # may non-transparent pixels map to slot 0


def policy_for(settings: QuantizationSettings) -> ColorZeroPolicy:
    behavior = settings.color_zero_behavior
    cpp = int(settings.colors_per_palette)
    value = tuple(int(c) for c in settings.color_zero_value)
    if behavior == "unique":
        return ColorZeroPolicy(behavior, cpp, cpp, None, None, True)
    if behavior == "shared":
        return ColorZeroPolicy(behavior, cpp, cpp - 1, value, pack_rgb(value), True)
    if behavior == "transparentFromTransparent":
        return ColorZeroPolicy(
            behavior, cpp, cpp - 1, TRANSPARENT_SLOT_COLOR, None, False
        )
    if behavior == "transparentFromColor":
        return ColorZeroPolicy(behavior, cpp, cpp - 1, value, None, False)
    raise ValueError(f"unknown color zero behaviour: {behavior}")


def transparency_mask(image: SourceImage, settings: QuantizationSettings) -> BoolMask:
    """Pixels forced to global index 0. All False for non-transparent modes."""
    behavior = settings.color_zero_behavior
    if behavior == "transparentFromTransparent":
        return image.alpha == 0
    if behavior == "transparentFromColor":
        key = np.asarray(settings.color_zero_value, dtype=np.uint8)
        return np.all(image.rgb == key, axis=-1)
    return np.zeros((image.height, image.width), dtype=bool)


def finalize_block(
    colours: List[Tuple[int, int]], policy: ColorZeroPolicy
) -> PaletteBlock:
    """
    Lay out one block's retained (packed, count) colours into slots.

    Colours are ordered by descending count, ties by ascending RGB; the
    reserved slot-0 colour (if any) goes first. Remaining slots are padded;
    slot 0 always counts as used.
    """
    ordered = sorted(colours, key=lambda cn: (-cn[1], cn[0]))
    slots: List[RGBTuple] = []
    if policy.slot_zero is not None:
        slots.append(policy.slot_zero)
    slots.extend(unpack_rgb(c) for c, _n in ordered)
    if len(slots) > policy.colors_per_palette:
        raise ValueError(
            f"block holds {len(slots)} colours, limit {policy.colors_per_palette}"
        )
    used = max(1, len(slots))
    slots.extend([UNUSED_SLOT_COLOR] * (policy.colors_per_palette - len(slots)))
    return PaletteBlock(tuple(slots), used)


def slot_zero_consistent(result: QuantizedResult) -> bool:
    """Check slot 0 of every block against the run's colour-zero behaviour."""
    policy = policy_for(result.settings)
    if policy.slot_zero is not None:
        if any(b.colors[0] != policy.slot_zero for b in result.blocks):
            return False
    if not np.all(result.indices[result.transparent] == 0):
        return False
    # With a budget of zero slot 0 is the only colour left to map to.
    if not policy.slot_zero_selectable and policy.budget > 0:
        opaque = ~result.transparent
        if np.any(result.indices[opaque] % policy.colors_per_palette == 0):
            return False
    return True


__all__ = [
    "ColorZeroPolicy",
    "policy_for",
    "transparency_mask",
    "finalize_block",
    "slot_zero_consistent",
]
