from __future__ import annotations

"""
Greedy palette block assigner.

Tiles are visited by descending distinct-colour count (ties raster order).
Each tile goes to the existing block it fits with the fewest new colours
(ties lowest id); failing that a new block is opened; failing that it joins
the block whose union with it is smallest and the union is collapsed to the
per-block budget. A tile whose own colours exceed the budget is collapsed
before placement. Tiles with no samples end up in block 0.

The result is deterministic for identical inputs.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from ..core_types import (
    ColourMerge,
    FidelityReport,
    PaletteBlock,
    QuantizationSettings,
    TileCoord,
    pack_rgb,
)
from ..histogram import TileStats
from ..utils import ProgressCallback, debug_log
from .collapse import collapse_colours, collapse_to_slot_zero
from .color_zero import finalize_block, policy_for


@dataclass
class _OpenBlock:
    counts: Dict[int, int] = field(default_factory=dict)
    holders: Dict[int, Set[TileCoord]] = field(default_factory=dict)

    def new_colours(self, colours: Set[int]) -> int:
        return sum(1 for c in colours if c not in self.counts)

    def absorb(self, colours: List[Tuple[int, int]], tile: TileCoord) -> None:
        for c, n in colours:
            self.counts[c] = self.counts.get(c, 0) + n
            self.holders.setdefault(c, set()).add(tile)

    def collapse(
        self, retained: List[Tuple[int, int]], merges: List[ColourMerge]
    ) -> Set[TileCoord]:
        """Replace the counts and return the tiles that held a merged colour."""
        hit: Set[TileCoord] = set()
        for m in merges:
            moved = self.holders.pop(pack_rgb(m.a), set())
            moved |= self.holders.pop(pack_rgb(m.b), set())
            hit |= moved
            self.holders.setdefault(pack_rgb(m.into), set()).update(moved)
        self.counts = dict(retained)
        for c in [c for c in self.holders if c not in self.counts]:
            del self.holders[c]  # merged into the free colour
        return hit


@dataclass(frozen=True)
class BlockAssignment:
    blocks: Tuple[PaletteBlock, ...]
    tile_blocks: np.ndarray  # uint8 (tiles_y, tiles_x)
    fidelity: FidelityReport


class _LossLedger:
    def __init__(self) -> None:
        self.merges: List[ColourMerge] = []
        self.tiles: Set[TileCoord] = set()

    def record(self, merges: List[ColourMerge], tiles: Iterable[TileCoord]) -> None:
        if not merges:
            return
        self.merges.extend(merges)
        self.tiles.update(tiles)

    def report(self) -> FidelityReport:
        if not self.merges:
            return FidelityReport()
        return FidelityReport(
            merges=tuple(self.merges),
            tiles=tuple(sorted(self.tiles, key=lambda t: (t[1], t[0]))),
            error=math.fsum(m.cost for m in self.merges),
            max_distance=max(m.distance for m in self.merges),
        )


def assign_blocks(
    tiles: List[TileStats],
    tiles_x: int,
    tiles_y: int,
    settings: QuantizationSettings,
    *,
    progress: Optional[ProgressCallback] = None,
    debug: bool = False,
) -> BlockAssignment:
    """
    Assign every tile to one palette block and lay out the blocks.

    Args:
      tiles    : per-tile histograms in raster order
      tiles_x  : tiles across
      tiles_y  : tiles down
      settings : validated settings
      progress : optional callback receiving tiles placed
      debug    : print per-tile placement decisions

    Returns:
      BlockAssignment with blocks padded to colors_per_palette slots.
    """
    policy = policy_for(settings)
    bits = settings.bits_per_channel
    budget = policy.budget
    ledger = _LossLedger()

    blocks: List[_OpenBlock] = []
    tile_blocks = np.zeros((tiles_y, tiles_x), dtype=np.uint8)

    order = sorted(
        (t for t in tiles if t.histogram), key=lambda t: (-t.distinct, t.raster)
    )
    for done, tile in enumerate(order, start=1):
        coord = (tile.tx, tile.ty)
        colours = [(c, n) for c, n in tile.histogram if c != policy.free_colour]

        if budget == 0:
            ledger.record(collapse_to_slot_zero(colours, policy.slot_zero), [coord])
            if not blocks:
                blocks.append(_OpenBlock())
            tile_blocks[tile.ty, tile.tx] = 0
            if progress is not None:
                progress(done)
            continue

        if len(colours) > budget:
            colours, merges = collapse_colours(
                colours, budget, bits, free_colour=policy.free_colour
            )
            ledger.record(merges, [coord])
            if debug:
                debug_log(
                    f"tile ({tile.tx},{tile.ty}): {tile.distinct} colours collapsed "
                    f"to {len(colours)} ({len(merges)} merges)"
                )

        wanted = {c for c, _n in colours}
        bid = _best_fit(blocks, wanted, budget)
        if bid is not None:
            blocks[bid].absorb(colours, coord)
            how = "fit"
        elif len(blocks) < settings.palette_count:
            bid = len(blocks)
            blocks.append(_OpenBlock())
            blocks[bid].absorb(colours, coord)
            how = "new"
        else:
            bid = _smallest_union(blocks, wanted)
            blk = blocks[bid]
            blk.absorb(colours, coord)
            retained, merges = collapse_colours(
                list(blk.counts.items()),
                budget,
                bits,
                free_colour=policy.free_colour,
            )
            touched = blk.collapse(retained, merges)
            touched.add(coord)
            ledger.record(merges, touched)
            how = "forced"

        tile_blocks[tile.ty, tile.tx] = bid
        if debug:
            debug_log(
                f"tile ({tile.tx},{tile.ty}) distinct={tile.distinct} -> block {bid} "
                f"[{how}] size={len(blocks[bid].counts)}/{budget}"
            )
        if progress is not None:
            progress(done)

    if not blocks:
        blocks.append(_OpenBlock())

    laid_out = tuple(finalize_block(list(b.counts.items()), policy) for b in blocks)
    return BlockAssignment(laid_out, tile_blocks, ledger.report())


def _best_fit(
    blocks: List[_OpenBlock], wanted: Set[int], budget: int
) -> Optional[int]:
    best: Optional[Tuple[int, int]] = None
    for bid, blk in enumerate(blocks):
        extra = blk.new_colours(wanted)
        if len(blk.counts) + extra > budget:
            continue
        if best is None or extra < best[0]:
            best = (extra, bid)
    return None if best is None else best[1]


def _smallest_union(blocks: List[_OpenBlock], wanted: Set[int]) -> int:
    return min(
        range(len(blocks)),
        key=lambda bid: (
            len(blocks[bid].counts) + blocks[bid].new_colours(wanted),
            bid,
        ),
    )


__all__ = ["BlockAssignment", "assign_blocks"]
