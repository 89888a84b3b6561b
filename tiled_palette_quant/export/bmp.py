from __future__ import annotations

"""
8-bit indexed Windows bitmap (BITMAPINFOHEADER, BI_RGB, bottom-up).

Layout:
  14  file header   'BM', file size, 0, 0, pixel offset (1078)
  40  info header   width, +height, 1 plane, 8 bpp, BI_RGB, image size,
                    2835 ppm x2, 256 colours used, 0 important
  1024 colour table B,G,R,0 in global index order, unused entries zero
  rows bottom-up, each padded to a multiple of 4 bytes

Encoded with struct: Pillow writes its own resolution and a trimmed table.
"""

import struct
from typing import List, Tuple

import numpy as np

from ..constants import (
    BMP_BITS_PER_PIXEL,
    BMP_COLOR_TABLE_ENTRIES,
    BMP_FILE_HEADER_SIZE,
    BMP_INFO_HEADER_SIZE,
    BMP_PIXEL_OFFSET,
    BMP_PIXELS_PER_METRE,
)
from ..core_types import IndexBuffer, QuantizedResult, RGBTuple
from ..errors import ExportError, PaletteOverflow

_FILE_HEADER = struct.Struct("<2sIHHI")
_INFO_HEADER = struct.Struct("<IiiHHIIiiII")
_BI_RGB = 0


def padded_row_bytes(width: int) -> int:
    return (int(width) + 3) & ~3


def bmp_size(width: int, height: int) -> int:
    return BMP_PIXEL_OFFSET + padded_row_bytes(width) * int(height)


def encode_indexed_bmp(result: QuantizedResult) -> bytes:
    """Serialize the index buffer and global palette as an 8-bit BMP."""
    total = result.settings.total_colors
    if total > BMP_COLOR_TABLE_ENTRIES:
        raise PaletteOverflow(
            f"{result.settings.palette_count} x {result.colors_per_palette} = "
            f"{total} colours exceeds the {BMP_COLOR_TABLE_ENTRIES}-entry table"
        )
    indices = np.asarray(result.indices)
    if indices.size and int(indices.max()) >= BMP_COLOR_TABLE_ENTRIES:
        raise PaletteOverflow(f"pixel index {int(indices.max())} does not fit 8 bits")

    width, height = result.width, result.height
    row = padded_row_bytes(width)
    image_size = row * height

    header = _FILE_HEADER.pack(
        b"BM", BMP_PIXEL_OFFSET + image_size, 0, 0, BMP_PIXEL_OFFSET
    )
    info = _INFO_HEADER.pack(
        BMP_INFO_HEADER_SIZE,
        width,
        height,
        1,
        BMP_BITS_PER_PIXEL,
        _BI_RGB,
        image_size,
        BMP_PIXELS_PER_METRE,
        BMP_PIXELS_PER_METRE,
        BMP_COLOR_TABLE_ENTRIES,
        0,
    )

    table = np.zeros((BMP_COLOR_TABLE_ENTRIES, 4), dtype=np.uint8)
    pal = np.array(result.global_palette(), dtype=np.uint8).reshape(-1, 3)
    table[: len(pal), 0] = pal[:, 2]
    table[: len(pal), 1] = pal[:, 1]
    table[: len(pal), 2] = pal[:, 0]

    pixels = np.zeros((height, row), dtype=np.uint8)
    pixels[:, :width] = indices.astype(np.uint8)
    body = pixels[::-1].tobytes()

    return header + info + table.tobytes() + body


def decode_indexed_bmp(data: bytes) -> Tuple[List[RGBTuple], IndexBuffer]:
    """
    Parse an 8-bit BI_RGB bitmap written by encode_indexed_bmp.

    Returns:
      (256 colour table entries as RGB, uint8 (H,W) index buffer top-down)
    """
    if len(data) < BMP_PIXEL_OFFSET or data[:2] != b"BM":
        raise ExportError("not an indexed bitmap")
    _magic, file_size, _r1, _r2, offset = _FILE_HEADER.unpack_from(data, 0)
    (
        info_size,
        width,
        height,
        _planes,
        bpp,
        compression,
        _image_size,
        _xppm,
        _yppm,
        used,
        _important,
    ) = _INFO_HEADER.unpack_from(data, BMP_FILE_HEADER_SIZE)
    if info_size != BMP_INFO_HEADER_SIZE or bpp != 8 or compression != _BI_RGB:
        raise ExportError("unsupported bitmap variant")
    if file_size != len(data):
        raise ExportError(f"file size field {file_size} != {len(data)} bytes")

    entries = used or BMP_COLOR_TABLE_ENTRIES
    start = BMP_FILE_HEADER_SIZE + BMP_INFO_HEADER_SIZE
    table = np.frombuffer(data, dtype=np.uint8, count=entries * 4, offset=start)
    table = table.reshape(-1, 4)
    palette = [(int(r), int(g), int(b)) for b, g, r, _x in table.tolist()]

    bottom_up = height > 0
    h = abs(height)
    row = padded_row_bytes(width)
    rows = np.frombuffer(data, dtype=np.uint8, count=row * h, offset=offset)
    grid = rows.reshape(h, row)[:, :width]
    if bottom_up:
        grid = grid[::-1]
    return palette, np.ascontiguousarray(grid)


__all__ = [
    "padded_row_bytes",
    "bmp_size",
    "encode_indexed_bmp",
    "decode_indexed_bmp",
]
