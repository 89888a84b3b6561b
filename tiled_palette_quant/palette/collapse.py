from __future__ import annotations

"""
Colour collapse: shrink a weighted colour set to a slot budget by repeatedly
merging its two closest members.

Working order is (-count, packed rgb). The closest pair by Euclidean RGB wins;
ties go to the lower combined index i+j, then the lower i. The pair is
replaced by its count-weighted mean snapped back to the channel grid; if that
colour is already present the counts are pooled. Every merge is returned so
the caller can report fidelity loss.
"""

import math
from typing import List, Optional, Tuple

import numpy as np

from ..channel import quantize_rgb
from ..core_types import ColourMerge, pack_rgb, unpack_rgb

WeightedColours = List[Tuple[int, int]]  # [(packed, count), ...]


def _ordered(colours: WeightedColours) -> WeightedColours:
    return sorted(colours, key=lambda cn: (-cn[1], cn[0]))


def _squared_distances(rgb: np.ndarray) -> np.ndarray:
    diff = rgb[:, None, :] - rgb[None, :, :]
    return np.einsum("ijk,ijk->ij", diff, diff).astype(np.float64)


def _pick(dist: np.ndarray, pos: np.ndarray) -> Tuple[int, int, float]:
    """
    Closest pair of a symmetric distance matrix; inf marks excluded entries.

    pos[k] is row k's place in the working order. Ties go to the lower
    pos sum, then the lower pos. Returns (row, col, distance_sq) with
    pos[row] < pos[col].
    """
    best = float(dist.min())
    rr, cc = np.nonzero(dist == best)
    keep = pos[rr] < pos[cc]
    rr, cc = rr[keep], cc[keep]
    pi, pj = pos[rr], pos[cc]
    k = int(np.lexsort((pi, pi + pj))[0])
    return int(rr[k]), int(cc[k]), best


def closest_pair(rgb: np.ndarray) -> Tuple[int, int, float]:
    """
    (i, j, distance_sq) of the closest pair in an (N,3) array, i < j.

    Ties: lower i + j, then lower i.
    """
    dist = _squared_distances(rgb)
    np.fill_diagonal(dist, np.inf)
    return _pick(dist, np.arange(rgb.shape[0]))


class _MergeTable:
    """
    Live colours and their pairwise squared distances.

    Rows are fixed slots: a merge retires two rows and reuses one of them for
    the merged colour, so only that row and column are recomputed.
    """

    def __init__(self, work: WeightedColours):
        self.packed = [c for c, _n in work]
        self.counts = [n for _c, n in work]
        self.rgb = np.array([unpack_rgb(c) for c in self.packed], dtype=np.int64)
        self.rows = {c: k for k, c in enumerate(self.packed)}
        self.spare: List[int] = []
        self.dist = _squared_distances(self.rgb)
        np.fill_diagonal(self.dist, np.inf)

    def __len__(self) -> int:
        return len(self.rows)

    def ordered_rows(self) -> List[int]:
        return sorted(
            self.rows.values(), key=lambda k: (-self.counts[k], self.packed[k])
        )

    def closest(self) -> Tuple[int, int]:
        pos = np.zeros(len(self.packed), dtype=np.int64)
        pos[self.ordered_rows()] = np.arange(len(self.rows))
        i, j, _d = _pick(self.dist, pos)
        return i, j

    def retire(self, k: int) -> None:
        del self.rows[self.packed[k]]
        self.dist[k, :] = np.inf
        self.dist[:, k] = np.inf
        self.spare.append(k)

    def add(self, colour: int, count: int) -> None:
        k = self.rows.get(colour)
        if k is not None:
            self.counts[k] += count
            return
        k = self.spare.pop()
        live = np.fromiter(self.rows.values(), dtype=np.intp, count=len(self.rows))
        self.packed[k] = colour
        self.counts[k] = count
        self.rgb[k] = unpack_rgb(colour)
        diff = self.rgb[live] - self.rgb[k]
        d = np.einsum("nc,nc->n", diff, diff).astype(np.float64)
        self.dist[k, live] = d
        self.dist[live, k] = d
        self.rows[colour] = k

    def retained(self) -> WeightedColours:
        return [(self.packed[k], self.counts[k]) for k in self.ordered_rows()]


def merge_pair(
    a: int, count_a: int, b: int, count_b: int, bits: int
) -> Tuple[int, ColourMerge]:
    """Merge two weighted colours into their snapped weighted mean."""
    ra, rb = unpack_rgb(a), unpack_rgb(b)
    total = count_a + count_b
    mean = [(ra[c] * count_a + rb[c] * count_b) / float(total) for c in range(3)]
    into = quantize_rgb(mean, bits)
    cost = count_a * math.dist(ra, into) + count_b * math.dist(rb, into)
    record = ColourMerge(
        a=ra,
        b=rb,
        into=into,
        distance=math.dist(ra, rb),
        weight=total,
        cost=cost,
    )
    return pack_rgb(into), record


def collapse_colours(
    colours: WeightedColours,
    budget: int,
    bits: int,
    *,
    free_colour: Optional[int] = None,
) -> Tuple[WeightedColours, List[ColourMerge]]:
    """
    Merge colours until at most `budget` remain.

    Args:
      colours     : (packed, count) pairs, any order, no duplicates
      budget      : slots available; must be >= 1
      bits        : channel depth the merged colours are snapped to
      free_colour : packed colour that costs no budget; a merge landing on it
                    drops out of the working set

    Returns:
      (retained colours in (-count, rgb) order, merges in the order applied)
    """
    if budget < 1:
        raise ValueError("collapse budget must be at least 1")
    work = _ordered([(c, n) for c, n in colours if c != free_colour])
    merges: List[ColourMerge] = []
    if len(work) <= budget:
        return work, merges

    table = _MergeTable(work)
    while len(table) > budget:
        i, j = table.closest()
        a, na = table.packed[i], table.counts[i]
        b, nb = table.packed[j], table.counts[j]
        into, record = merge_pair(a, na, b, nb, bits)
        merges.append(record)

        table.retire(i)
        table.retire(j)
        if into != free_colour:
            table.add(into, na + nb)
    return table.retained(), merges


def collapse_to_slot_zero(
    colours: WeightedColours, slot_zero: Tuple[int, int, int]
) -> List[ColourMerge]:
    """Record every colour being absorbed by slot 0 (budget of zero)."""
    out: List[ColourMerge] = []
    for c, n in _ordered(colours):
        rgb = unpack_rgb(c)
        d = math.dist(rgb, slot_zero)
        out.append(ColourMerge(rgb, slot_zero, slot_zero, d, n, n * d))
    return out


__all__ = [
    "WeightedColours",
    "closest_pair",
    "merge_pair",
    "collapse_colours",
    "collapse_to_slot_zero",
]
