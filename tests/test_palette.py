import numpy as np
import pytest

from tiled_palette_quant.channel import channel_lut
from tiled_palette_quant.core_types import (
    QuantizationSettings,
    SourceImage,
    pack_rgb,
    unpack_rgb,
)
from tiled_palette_quant.histogram import TileStats
from tiled_palette_quant.palette import (
    assign_blocks,
    closest_pair,
    collapse_colours,
    finalize_block,
    merge_pair,
    policy_for,
    transparency_mask,
)

BLACK = pack_rgb((0, 0, 0))
WHITE = pack_rgb((255, 255, 255))


def _tile(tx, hist, ty=0, tiles_x=4):
    return TileStats(tx, ty, ty * tiles_x + tx, hist)


# Collapse


def test_collapse_within_budget_is_a_no_op():
    colours = [(WHITE, 1), (BLACK, 3)]
    kept, merges = collapse_colours(colours, 2, 3)
    assert kept == [(BLACK, 3), (WHITE, 1)]
    assert merges == []


def test_collapse_merges_closest_pair_into_snapped_mean():
    red_ish = pack_rgb((36, 0, 0))
    kept, merges = collapse_colours([(BLACK, 10), (WHITE, 5), (red_ish, 1)], 2, 3)

    assert kept == [(BLACK, 11), (WHITE, 5)]
    (m,) = merges
    assert (m.a, m.b, m.into) == ((0, 0, 0), (36, 0, 0), (0, 0, 0))
    assert m.distance == pytest.approx(36.0)
    assert m.weight == 11
    assert m.cost == pytest.approx(36.0)


def test_closest_pair_ties_prefer_lower_index_sum():
    rgb = np.array([[0, 0, 0], [10, 0, 0], [20, 0, 0]], dtype=np.int64)
    assert closest_pair(rgb) == (0, 1, 100.0)


def test_collapse_respects_budget_and_grid():
    rng = np.random.default_rng(7)
    lut = channel_lut(3)
    raw = rng.integers(0, 256, size=(50, 3))
    colours = {}
    for rgb in lut[raw].tolist():
        c = pack_rgb(rgb)
        colours[c] = colours.get(c, 0) + 1
    kept, merges = collapse_colours(list(colours.items()), 4, 3)

    assert len(kept) <= 4
    assert merges
    grid = set(lut.tolist())
    for c, _n in kept:
        assert set(unpack_rgb(c)) <= grid
    assert sum(n for _c, n in kept) == 50


def _pairwise_collapse(colours, budget, bits, free_colour=None):
    """Full-search collapse: every step rescans all pairs in working order."""

    def ordered(cs):
        return sorted(cs, key=lambda cn: (-cn[1], cn[0]))

    work = ordered([(c, n) for c, n in colours if c != free_colour])
    merges = []
    while len(work) > budget:
        rgb = [unpack_rgb(c) for c, _n in work]
        best = None
        for i in range(len(work)):
            for j in range(i + 1, len(work)):
                d = sum((p - q) ** 2 for p, q in zip(rgb[i], rgb[j]))
                if best is None or (d, i + j, i) < best:
                    best = (d, i + j, i, j)
        i, j = best[2], best[3]
        (a, na), (b, nb) = work[i], work[j]
        into, record = merge_pair(a, na, b, nb, bits)
        merges.append(record)
        rest = dict(cn for k, cn in enumerate(work) if k not in (i, j))
        if into != free_colour:
            rest[into] = rest.get(into, 0) + na + nb
        work = ordered(rest.items())
    return work, merges


@pytest.mark.parametrize(
    "seed, bits, free",
    [(1, 8, None), (2, 3, None), (3, 2, None), (4, 2, BLACK), (5, 1, None)],
)
def test_collapse_matches_full_pair_search(seed, bits, free):
    rng = np.random.default_rng(seed)
    lut = channel_lut(bits)
    colours = {}
    for rgb in lut[rng.integers(0, 256, size=(80, 3))].tolist():
        c = pack_rgb(rgb)
        colours[c] = colours.get(c, 0) + int(rng.integers(1, 4))
    colours = list(colours.items())

    for budget in (1, 3, 7):
        assert collapse_colours(colours, budget, bits, free_colour=free) == (
            _pairwise_collapse(colours, budget, bits, free)
        )


def test_collapse_of_a_large_set():
    rng = np.random.default_rng(21)
    picks = rng.choice(1 << 24, size=300, replace=False)
    colours = [(int(c), int(rng.integers(1, 50))) for c in picks]
    kept, merges = collapse_colours(colours, 15, 8)

    assert len(kept) <= 15
    assert sum(n for _c, n in kept) == sum(n for _c, n in colours)
    assert 0 < len(merges) <= 300 - len(kept)
    assert kept == sorted(kept, key=lambda cn: (-cn[1], cn[0]))
    assert len({c for c, _n in kept}) == len(kept)


def test_collapse_drops_the_free_colour():
    grey = pack_rgb((73, 73, 73))
    kept, merges = collapse_colours([(BLACK, 5), (grey, 2)], 1, 3, free_colour=BLACK)
    assert kept == [(grey, 2)]
    assert merges == []


def test_collapse_needs_a_slot():
    with pytest.raises(ValueError):
        collapse_colours([(BLACK, 1)], 0, 3)


# Colour zero


@pytest.mark.parametrize(
    "behavior, budget, selectable",
    [
        ("unique", 16, True),
        ("shared", 15, True),
        ("transparentFromTransparent", 15, False),
        ("transparentFromColor", 15, False),
    ],
)
def test_policy_budgets(behavior, budget, selectable):
    policy = policy_for(QuantizationSettings(color_zero_behavior=behavior))
    assert policy.budget == budget
    assert policy.slot_zero_selectable is selectable


def test_transparency_masks():
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    rgba[0, 0] = (255, 0, 255, 255)
    rgba[1, 1, 3] = 0
    image = SourceImage.from_array(rgba)

    by_alpha = QuantizationSettings(color_zero_behavior="transparentFromTransparent")
    by_colour = QuantizationSettings(
        color_zero_behavior="transparentFromColor", color_zero_value=(255, 0, 255)
    )
    assert transparency_mask(image, by_alpha).tolist() == [
        [False, False],
        [False, True],
    ]
    assert transparency_mask(image, by_colour).tolist() == [
        [True, False],
        [False, False],
    ]
    assert not transparency_mask(image, QuantizationSettings()).any()


def test_finalize_orders_by_count_and_pads():
    policy = policy_for(QuantizationSettings(colors_per_palette=4))
    red, blue = pack_rgb((255, 0, 0)), pack_rgb((0, 0, 255))
    block = finalize_block([(red, 1), (blue, 5)], policy)
    assert block.colors == ((0, 0, 255), (255, 0, 0), (0, 0, 0), (0, 0, 0))
    assert block.used == 2


def test_finalize_puts_reserved_colour_first():
    policy = policy_for(
        QuantizationSettings(
            colors_per_palette=4,
            color_zero_behavior="shared",
            color_zero_value=(36, 36, 36),
        )
    )
    block = finalize_block([(WHITE, 2)], policy)
    assert block.colors == ((36, 36, 36), (255, 255, 255), (0, 0, 0), (0, 0, 0))
    assert block.used == 2


def test_finalize_empty_block_still_has_slot_zero():
    block = finalize_block([], policy_for(QuantizationSettings(colors_per_palette=4)))
    assert len(block) == 4
    assert block.used == 1


# Assignment


def _settings(**kw):
    base = dict(tile_size=8, palette_count=2, colors_per_palette=4, bits_per_channel=8)
    base.update(kw)
    return QuantizationSettings(**base)


def test_best_fit_prefers_fewest_new_colours():
    tiles = [
        _tile(0, [(1, 3), (2, 2), (3, 1)]),
        _tile(1, [(4, 2), (5, 1)]),
        _tile(2, [(1, 2), (2, 1)]),
        _tile(3, [(4, 4)]),
    ]
    out = assign_blocks(tiles, 4, 1, _settings())

    assert out.tile_blocks.tolist() == [[0, 1, 0, 1]]
    assert out.blocks[0].colors == ((0, 0, 1), (0, 0, 2), (0, 0, 3), (0, 0, 0))
    assert out.blocks[0].used == 3
    assert out.blocks[1].colors == ((0, 0, 4), (0, 0, 5), (0, 0, 0), (0, 0, 0))
    assert out.fidelity.is_lossless


def test_full_blocks_force_a_collapsed_union():
    near_black = pack_rgb((10, 0, 0))
    tiles = [
        _tile(0, [(BLACK, 5), (WHITE, 5)], tiles_x=2),
        _tile(1, [(near_black, 1)], tiles_x=2),
    ]
    out = assign_blocks(tiles, 2, 1, _settings(palette_count=1, colors_per_palette=2))

    assert out.tile_blocks.tolist() == [[0, 0]]
    assert out.blocks[0].colors == ((2, 0, 0), (255, 255, 255))
    assert out.fidelity.merge_count == 1
    assert out.fidelity.tiles == ((0, 0), (1, 0))
    assert out.fidelity.error > 0


def test_forced_merges_flag_only_tiles_holding_merged_colours():
    red = pack_rgb((255, 0, 0))
    tiles = [
        _tile(0, [(BLACK, 5), (pack_rgb((10, 0, 0)), 1)]),
        _tile(1, [(WHITE, 5)]),
        _tile(2, [(red, 5)]),
        _tile(3, [(pack_rgb((4, 0, 0)), 1)]),
    ]
    out = assign_blocks(tiles, 4, 1, _settings(palette_count=1, colors_per_palette=3))

    assert out.tile_blocks.tolist() == [[0, 0, 0, 0]]
    assert out.blocks[0].colors == ((2, 0, 0), (255, 0, 0), (255, 255, 255))
    assert out.fidelity.merge_count == 2
    # the second merge reaches tile 0 through the colour the first one made
    assert out.fidelity.tiles == ((0, 0), (2, 0), (3, 0))
    assert not out.fidelity.affects(1, 0)


def test_many_forced_placements_report_each_tile_once():
    rng = np.random.default_rng(11)
    tiles = []
    for i in range(240):
        colours = rng.choice(4096, size=rng.integers(1, 5), replace=False)
        hist = [(int(c) * 4097, int(rng.integers(1, 9))) for c in colours]
        hist.sort(key=lambda cn: (-cn[1], cn[0]))
        tiles.append(_tile(i % 16, hist, i // 16, tiles_x=16))
    out = assign_blocks(tiles, 16, 15, _settings(palette_count=2))

    assert out.fidelity.merge_count > 0
    flagged = out.fidelity.tiles
    assert len(set(flagged)) == len(flagged)
    assert list(flagged) == sorted(flagged, key=lambda t: (t[1], t[0]))
    assert all(0 <= tx < 16 and 0 <= ty < 15 for tx, ty in flagged)
    assert all(len(b.colors) == 4 for b in out.blocks)


def test_oversized_tile_is_collapsed_and_flagged():
    hist = [(pack_rgb((i * 40, 0, 0)), 1) for i in range(6)]
    out = assign_blocks([_tile(0, hist, tiles_x=1)], 1, 1, _settings())

    assert out.blocks[0].used == 4
    assert out.fidelity.affects(0, 0)
    assert out.fidelity.merge_count >= 2


def test_zero_budget_maps_everything_to_slot_zero():
    settings = _settings(
        palette_count=2, colors_per_palette=1, color_zero_behavior="shared"
    )
    tiles = [_tile(0, [(BLACK, 3), (pack_rgb((36, 0, 0)), 1)], tiles_x=1)]
    out = assign_blocks(tiles, 1, 1, settings)

    assert len(out.blocks) == 1
    assert out.blocks[0].colors == ((0, 0, 0),)
    assert out.fidelity.merge_count == 1
    assert out.fidelity.tiles == ((0, 0),)


def test_shared_colour_costs_no_budget():
    settings = _settings(colors_per_palette=2, color_zero_behavior="shared")
    tiles = [_tile(0, [(BLACK, 3), (WHITE, 1)], tiles_x=1)]
    out = assign_blocks(tiles, 1, 1, settings)

    assert out.blocks[0].colors == ((0, 0, 0), (255, 255, 255))
    assert out.fidelity.is_lossless


def test_tiles_without_samples_use_block_zero():
    tiles = [_tile(0, [], tiles_x=2), _tile(1, [], tiles_x=2)]
    out = assign_blocks(tiles, 2, 1, _settings())
    assert out.tile_blocks.tolist() == [[0, 0]]
    assert len(out.blocks) == 1
    assert out.blocks[0].used == 1


def test_assignment_is_deterministic():
    rng = np.random.default_rng(3)
    tiles = []
    for i in range(12):
        colours = rng.choice(40, size=rng.integers(1, 7), replace=False)
        tiles.append(_tile(i % 4, [(int(c), 1) for c in sorted(colours)], i // 4))
    a = assign_blocks(tiles, 4, 3, _settings(palette_count=3))
    b = assign_blocks(tiles, 4, 3, _settings(palette_count=3))
    assert a.blocks == b.blocks
    assert np.array_equal(a.tile_blocks, b.tile_blocks)
    assert a.fidelity == b.fidelity
