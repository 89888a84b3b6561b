"""
Palette block construction.

Provides:
  assign_blocks(tiles, tiles_x, tiles_y, settings, *, progress=None, debug=False)
    Greedy tile -> block assignment with colour collapse.

  collapse_colours(colours, budget, bits, *, free_colour=None)
    Closest-pair merging down to a slot budget.

  policy_for(settings) / transparency_mask(image, settings)
    Colour-zero semantics for slot 0 and forced-transparent pixels.
"""

from .assign import BlockAssignment, assign_blocks
from .collapse import closest_pair, collapse_colours, collapse_to_slot_zero, merge_pair
from .color_zero import (
    ColorZeroPolicy,
    finalize_block,
    policy_for,
    slot_zero_consistent,
    transparency_mask,
)

__all__ = [
    "BlockAssignment",
    "assign_blocks",
    "closest_pair",
    "collapse_colours",
    "collapse_to_slot_zero",
    "merge_pair",
    "ColorZeroPolicy",
    "finalize_block",
    "policy_for",
    "slot_zero_consistent",
    "transparency_mask",
]
