"""
Hardware ceilings, defaults and tunables used across the project.

- Legal settings ranges (RANGE_*)
- Ordered dither matrices (DITHER_MATRICES)
- Error diffusion kernel (KERNEL_FS)
- Indexed bitmap layout constants (BMP_*)
- Progress stage boundaries (PROGRESS_*)
"""
from __future__ import annotations

from typing import Dict, Tuple

# =========================
# Settings ranges
# =========================

# Inclusive integer ranges.
RANGE_PALETTE_COUNT: Tuple[int, int] = (1, 8)
RANGE_COLORS_PER_PALETTE: Tuple[int, int] = (1, 16)
RANGE_BITS_PER_CHANNEL: Tuple[int, int] = (1, 8)
MIN_TILE_SIZE = 1

# fraction_of_pixels is (0, 1]; dither_weight is [0, 1].
RANGE_DITHER_WEIGHT: Tuple[float, float] = (0.0, 1.0)

CHANNEL_MAX = 255

# Original tool defaults (Sega Genesis / Mega Drive VDP).
DEFAULT_TILE_SIZE = 8
DEFAULT_PALETTE_COUNT = 4
DEFAULT_COLORS_PER_PALETTE = 16
DEFAULT_BITS_PER_CHANNEL = 3

# Colour written into slot 0 when the slot only marks transparency.
TRANSPARENT_SLOT_COLOR: Tuple[int, int, int] = (0, 0, 0)

# Colour written into unused slots of a block.
UNUSED_SLOT_COLOR: Tuple[int, int, int] = (0, 0, 0)

# =========================
# Ordered dither patterns
# =========================
# Each matrix holds ranks 0..n-1. The offset for rank m is
# ((m + 0.5) / n - 0.5) * step * weight, so the mean offset is zero.

DITHER_MATRICES: Dict[str, Tuple[Tuple[int, ...], ...]] = {
    # 4x4 Bayer: diagonal cross-hatch
    "diag4": (
        (0, 8, 2, 10),
        (12, 4, 14, 6),
        (3, 11, 1, 9),
        (15, 7, 13, 5),
    ),
    # Row-only ranks: horizontal stripes
    "horiz4": ((0,), (2,), (1,), (3,)),
    # Column-only ranks: vertical stripes
    "vert4": ((0, 2, 1, 3),),
    # 2x2 Bayer: checkerboard
    "diag2": (
        (0, 2),
        (3, 1),
    ),
    "horiz2": ((0,), (1,)),
    "vert2": ((0, 1),),
}

# =========================
# Error diffusion
# =========================

# Floyd-Steinberg (weights sum to 1), raster order only: (dx, dy, weight).
KERNEL_FS: Tuple[Tuple[int, int, float], ...] = (
    (1, 0, 7 / 16),
    (-1, 1, 3 / 16),
    (0, 1, 5 / 16),
    (1, 1, 1 / 16),
)

# =========================
# Indexed bitmap
# =========================

BMP_FILE_HEADER_SIZE = 14
BMP_INFO_HEADER_SIZE = 40
BMP_COLOR_TABLE_ENTRIES = 256
BMP_COLOR_TABLE_SIZE = BMP_COLOR_TABLE_ENTRIES * 4
BMP_PIXEL_OFFSET = BMP_FILE_HEADER_SIZE + BMP_INFO_HEADER_SIZE + BMP_COLOR_TABLE_SIZE
BMP_BITS_PER_PIXEL = 8
BMP_PIXELS_PER_METRE = 2835  # 72 dpi

ACT_ENTRIES = 256

# =========================
# Nearest-colour lookup
# =========================

# Colours resolved per vectorised batch; bounds the (N, slots, 3) scratch array.
NEAREST_CHUNK = 65_536

# =========================
# Progress stages (percent)
# =========================

PROGRESS_PREPARED = 20
PROGRESS_HISTOGRAMS = 35
PROGRESS_ASSIGNED = 75
PROGRESS_DONE = 100

# Worker polling interval in seconds.
WORKER_POLL_SECONDS = 0.05
