from __future__ import annotations

"""
Quantization engine: one synchronous, side-effect-free run.

Stages and progress bands:
   0..20  validate, colour-zero mask, dither + channel quantize
  20..35  per-tile histograms over sampled pixels
  35..75  palette block assignment (with colour collapse)
  75..100 indexed image
"""

import time
from typing import Callable, Optional, Tuple

import numpy as np

from .channel import quantize_array
from .constants import (
    PROGRESS_ASSIGNED,
    PROGRESS_DONE,
    PROGRESS_HISTOGRAMS,
    PROGRESS_PREPARED,
)
from .core_types import (
    BoolMask,
    PaletteBlock,
    QuantizationSettings,
    QuantizedResult,
    SourceImage,
    TileAssignment,
    U8Image,
    pack_rgb_array,
)
from .dither import dither_diffusion, dither_ordered
from .histogram import build_tile_histograms
from .indexed import build_indices
from .palette import assign_blocks, policy_for, transparency_mask
from .sampling import tile_grid
from .settings import validate_image, validate_settings
from .utils import (
    ProgressCallback,
    ProgressTracker,
    config_line,
    debug_log,
    format_pairs,
    format_seconds,
    warn,
)

BlocksCallback = Callable[[Tuple[PaletteBlock, ...]], None]


def working_colours(
    image: SourceImage,
    settings: QuantizationSettings,
    transparent: BoolMask,
    progress: Optional[ProgressCallback] = None,
) -> U8Image:
    """Dithered (if enabled) and channel-quantized RGB, uint8 (H,W,3)."""
    rgb = np.ascontiguousarray(image.rgb)
    bits = settings.bits_per_channel
    mode = settings.dither_mode
    if mode == "off":
        return quantize_array(rgb, bits)
    if mode == "fast":
        return dither_ordered(
            rgb, bits, settings.dither_pattern, settings.dither_weight
        )
    return dither_diffusion(
        rgb,
        bits,
        settings.dither_pattern,
        settings.dither_weight,
        skip=transparent if transparent.any() else None,
        progress=progress,
    )


def run(
    settings: QuantizationSettings,
    image: SourceImage,
    progress: Optional[ProgressCallback] = None,
    debug: bool = False,
    *,
    on_blocks: Optional[BlocksCallback] = None,
) -> QuantizedResult:
    """
    Quantize one image.

    Args:
      settings : run configuration; validated here
      image    : RGBA source, never modified
      progress : optional callback receiving non-decreasing ints 0..100
      debug    : log configuration and stage timings
      on_blocks: optional callback receiving the laid-out palette blocks as
                 soon as assignment finishes, before indexing

    Returns:
      QuantizedResult with read-only arrays.

    Raises:
      InvalidSettings, InvalidImage before any work starts.
    """
    settings = validate_settings(settings)
    image = validate_image(image)
    tracker = ProgressTracker(progress)
    tracker.report(0)
    t0 = time.perf_counter()

    if debug:
        config_line(
            "engine",
            [
                ("size", f"{image.width}x{image.height}"),
                ("tile", settings.tile_size),
                ("blocks", f"{settings.palette_count}x{settings.colors_per_palette}"),
                ("bits", settings.bits_per_channel),
                ("fraction", settings.fraction_of_pixels),
                ("dither", settings.dither_mode),
                ("colour0", settings.color_zero_behavior),
            ],
            debug,
        )

    # Prepare
    transparent = transparency_mask(image, settings)
    working = working_colours(
        image,
        settings,
        transparent,
        progress=lambda row: tracker.stage(0, PROGRESS_PREPARED, row, image.height),
    )
    tracker.report(PROGRESS_PREPARED)
    t_prep = time.perf_counter()

    # Histograms
    tiles_x, tiles_y = tile_grid(image.width, image.height, settings.tile_size)
    n_tiles = tiles_x * tiles_y
    tiles = build_tile_histograms(
        pack_rgb_array(working),
        ~transparent,
        settings.tile_size,
        settings.fraction_of_pixels,
        progress=lambda done: tracker.stage(
            PROGRESS_PREPARED, PROGRESS_HISTOGRAMS, done, n_tiles
        ),
    )
    tracker.report(PROGRESS_HISTOGRAMS)
    t_hist = time.perf_counter()

    # Assign
    n_sampled = sum(1 for t in tiles if t.histogram)
    assignment = assign_blocks(
        tiles,
        tiles_x,
        tiles_y,
        settings,
        progress=lambda done: tracker.stage(
            PROGRESS_HISTOGRAMS, PROGRESS_ASSIGNED, done, n_sampled
        ),
        debug=debug,
    )
    tracker.report(PROGRESS_ASSIGNED)
    if on_blocks is not None:
        on_blocks(assignment.blocks)
    t_assign = time.perf_counter()

    # Index
    policy = policy_for(settings)
    indices = build_indices(
        working,
        transparent,
        assignment.tile_blocks,
        settings.tile_size,
        list(assignment.blocks),
        policy,
    )

    indices.setflags(write=False)
    transparent = np.ascontiguousarray(transparent)
    transparent.setflags(write=False)
    tile_blocks = assignment.tile_blocks
    tile_blocks.setflags(write=False)

    result = QuantizedResult(
        width=image.width,
        height=image.height,
        settings=settings,
        blocks=assignment.blocks,
        tile_assignment=TileAssignment(
            settings.tile_size, tiles_x, tiles_y, tile_blocks
        ),
        indices=indices,
        transparent=transparent,
        fidelity=assignment.fidelity,
    )
    tracker.report(PROGRESS_DONE)
    t_end = time.perf_counter()

    if not result.fidelity.is_lossless:
        fid = result.fidelity
        warn(
            f"colour collapse: {fid.merge_count} merges over {len(fid.tiles)} tile(s), "
            f"error={fid.error:.1f} max={fid.max_distance:.1f}"
        )
    if debug:
        debug_log(
            format_pairs(
                [
                    ("prepare", format_seconds(t_prep - t0)),
                    ("histograms", format_seconds(t_hist - t_prep)),
                    ("assign", format_seconds(t_assign - t_hist)),
                    ("index", format_seconds(t_end - t_assign)),
                    ("blocks", len(result.blocks)),
                    ("colours", result.distinct_color_count),
                ]
            )
        )
    return result


__all__ = ["BlocksCallback", "working_colours", "run"]
