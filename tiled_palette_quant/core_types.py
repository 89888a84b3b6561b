from __future__ import annotations

"""
Core type aliases, settings and result value objects, and lightweight helpers.
"""

from dataclasses import dataclass, field
from typing import List, Literal, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidImage

# Basic aliases

RGBTuple = Tuple[int, int, int]
HexStr = str
PackedRGB = int  # 0xRRGGBB
TileCoord = Tuple[int, int]  # (tx, ty)

U8Image = NDArray[np.uint8]  # (H, W, 3)
U8RGBA = NDArray[np.uint8]  # (H, W, 4)
U8Mask = NDArray[np.uint8]  # (H, W)
BoolMask = NDArray[np.bool_]  # (H, W)
IndexBuffer = NDArray[np.uint8]  # (H, W) global palette indices

DitherMode = Literal["off", "fast", "slow"]
DitherPattern = Literal["diag4", "horiz4", "vert4", "diag2", "horiz2", "vert2"]
ColorZeroBehavior = Literal[
    "unique", "shared", "transparentFromTransparent", "transparentFromColor"
]
ExportFormat = Literal["bmp", "gpl", "jasc-pal", "act", "firmware-c"]

DITHER_MODES: Tuple[str, ...] = ("off", "fast", "slow")
DITHER_PATTERNS: Tuple[str, ...] = (
    "diag4",
    "horiz4",
    "vert4",
    "diag2",
    "horiz2",
    "vert2",
)
COLOR_ZERO_BEHAVIORS: Tuple[str, ...] = (
    "unique",
    "shared",
    "transparentFromTransparent",
    "transparentFromColor",
)
EXPORT_FORMATS: Tuple[str, ...] = ("bmp", "gpl", "jasc-pal", "act", "firmware-c")

# Collections

TileHistogram = List[Tuple[PackedRGB, int]]  # [(colour, count), ...] sorted

# Value objects


@dataclass(frozen=True)
class QuantizationSettings:
    """
    Immutable run configuration. Validate with settings.validate_settings()
    before handing it to the engine.
    """

    tile_size: int = 8
    palette_count: int = 4
    colors_per_palette: int = 16
    bits_per_channel: int = 3
    fraction_of_pixels: float = 1.0
    dither_mode: DitherMode = "off"
    dither_weight: float = 1.0
    dither_pattern: DitherPattern = "diag4"
    color_zero_behavior: ColorZeroBehavior = "unique"
    color_zero_value: RGBTuple = (0, 0, 0)

    @property
    def total_colors(self) -> int:
        return self.palette_count * self.colors_per_palette

    @property
    def is_transparent(self) -> bool:
        return self.color_zero_behavior in (
            "transparentFromTransparent",
            "transparentFromColor",
        )


@dataclass(frozen=True, eq=False)
class SourceImage:
    """RGBA pixels, row-major and top-down. The engine only ever reads it."""

    width: int
    height: int
    rgba: U8RGBA  # (H, W, 4)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> "SourceImage":
        """Wrap a flat RGBA byte buffer (len == width * height * 4)."""
        arr = np.frombuffer(bytes(data), dtype=np.uint8)
        if width <= 0 or height <= 0 or arr.size != width * height * 4:
            raise InvalidImage(
                f"RGBA buffer of {arr.size} bytes does not match {width}x{height}"
            )
        return cls(int(width), int(height), arr.reshape(height, width, 4).copy())

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "SourceImage":
        """Wrap a uint8 (H,W,3) or (H,W,4) array; RGB input gets alpha=255."""
        a = np.asarray(arr)
        if a.dtype != np.uint8 or a.ndim != 3 or a.shape[-1] not in (3, 4):
            raise InvalidImage("expected uint8 (H,W,3/4) array")
        if 0 in a.shape[:2]:
            raise InvalidImage(f"image has shape {a.shape}")
        if a.shape[-1] == 3:
            alpha = np.full(a.shape[:2] + (1,), 255, dtype=np.uint8)
            a = np.concatenate([a, alpha], axis=-1)
        return cls(int(a.shape[1]), int(a.shape[0]), np.ascontiguousarray(a).copy())

    @property
    def rgb(self) -> U8Image:
        return self.rgba[..., :3]

    @property
    def alpha(self) -> U8Mask:
        return self.rgba[..., 3]


@dataclass(frozen=True)
class PaletteBlock:
    """Exactly colors_per_palette RGB slots; `used` counts meaningful slots."""

    colors: Tuple[RGBTuple, ...]
    used: int

    def __len__(self) -> int:
        return len(self.colors)


@dataclass(frozen=True, eq=False)
class TileAssignment:
    """Block id per tile, indexed [ty, tx]. Edge tiles are clipped."""

    tile_size: int
    tiles_x: int
    tiles_y: int
    blocks: NDArray[np.uint8]  # (tiles_y, tiles_x)

    def block_of(self, tx: int, ty: int) -> int:
        return int(self.blocks[ty, tx])

    def tile_of_pixel(self, x: int, y: int) -> TileCoord:
        return (x // self.tile_size, y // self.tile_size)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TileAssignment):
            return NotImplemented
        return (
            self.tile_size == other.tile_size
            and self.tiles_x == other.tiles_x
            and self.tiles_y == other.tiles_y
            and np.array_equal(self.blocks, other.blocks)
        )


@dataclass(frozen=True)
class ColourMerge:
    """
    One colour-collapse step: `a` and `b` became `into`.

    distance is |a - b|; weight the combined pixel count; cost the
    count-weighted distance both colours moved to reach `into`.
    """

    a: RGBTuple
    b: RGBTuple
    into: RGBTuple
    distance: float
    weight: int
    cost: float = 0.0


@dataclass(frozen=True)
class FidelityReport:
    """
    Advisory record of lossy colour collapse. Empty when nothing was merged.

    error is the count-weighted sum of RGB distances moved by merges.
    """

    merges: Tuple[ColourMerge, ...] = ()
    tiles: Tuple[TileCoord, ...] = ()
    error: float = 0.0
    max_distance: float = 0.0

    @property
    def merge_count(self) -> int:
        return len(self.merges)

    @property
    def is_lossless(self) -> bool:
        return not self.merges

    def affects(self, tx: int, ty: int) -> bool:
        return (tx, ty) in self.tiles


@dataclass(frozen=True, eq=False)
class QuantizedResult:
    """Output of one engine run. Arrays are marked read-only."""

    width: int
    height: int
    settings: QuantizationSettings
    blocks: Tuple[PaletteBlock, ...]
    tile_assignment: TileAssignment
    indices: IndexBuffer  # (H, W) global indices
    transparent: BoolMask  # (H, W) pixels forced to index 0
    fidelity: FidelityReport = field(default_factory=FidelityReport)

    @property
    def colors_per_palette(self) -> int:
        return self.settings.colors_per_palette

    def global_palette(self) -> List[RGBTuple]:
        """Flat palette in global-index order (block * cpp + slot)."""
        out: List[RGBTuple] = []
        for block in self.blocks:
            out.extend(block.colors)
        return out

    def used_colors(self) -> List[RGBTuple]:
        """Distinct RGB colours actually referenced by pixel indices."""
        pal = self.global_palette()
        used = np.unique(self.indices)
        return sorted({pal[int(i)] for i in used.tolist()})

    @property
    def distinct_color_count(self) -> int:
        return len(self.used_colors())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuantizedResult):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.settings == other.settings
            and self.blocks == other.blocks
            and self.tile_assignment == other.tile_assignment
            and np.array_equal(self.indices, other.indices)
            and np.array_equal(self.transparent, other.transparent)
            and self.fidelity == other.fidelity
        )


# Small helpers


def pack_rgb(rgb: Sequence[int]) -> PackedRGB:
    """(r, g, b) -> 0xRRGGBB. Ascending packed order is ascending RGB order."""
    return (int(rgb[0]) << 16) | (int(rgb[1]) << 8) | int(rgb[2])


def unpack_rgb(packed: PackedRGB) -> RGBTuple:
    """0xRRGGBB -> (r, g, b)."""
    p = int(packed)
    return ((p >> 16) & 0xFF, (p >> 8) & 0xFF, p & 0xFF)


def pack_rgb_array(rgb: np.ndarray) -> NDArray[np.int64]:
    """Vectorised pack_rgb for (..., 3) arrays."""
    a = rgb.astype(np.int64, copy=False)
    return (a[..., 0] << 16) | (a[..., 1] << 8) | a[..., 2]


def rgb_to_hex(rgb: RGBTuple) -> HexStr:
    """RGB tuple to lowercase hex string '#rrggbb'."""
    return f"#{rgb[0]:02x}{rgb[1]:02x}{rgb[2]:02x}"


__all__ = [
    # aliases / types
    "RGBTuple",
    "HexStr",
    "PackedRGB",
    "TileCoord",
    "U8Image",
    "U8RGBA",
    "U8Mask",
    "BoolMask",
    "IndexBuffer",
    "DitherMode",
    "DitherPattern",
    "ColorZeroBehavior",
    "ExportFormat",
    "DITHER_MODES",
    "DITHER_PATTERNS",
    "COLOR_ZERO_BEHAVIORS",
    "EXPORT_FORMATS",
    "TileHistogram",
    # value objects
    "QuantizationSettings",
    "SourceImage",
    "PaletteBlock",
    "TileAssignment",
    "ColourMerge",
    "FidelityReport",
    "QuantizedResult",
    # helpers
    "pack_rgb",
    "unpack_rgb",
    "pack_rgb_array",
    "rgb_to_hex",
]
