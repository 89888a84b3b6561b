"""
Exporters: pure functions from a QuantizedResult to file contents.

export(result, fmt, block_index=None, **options) -> bytes | str
  fmt        : "bmp" | "gpl" | "jasc-pal" | "act" | "firmware-c"
  block_index: block for palette formats (default 0); ignored by "bmp"
  options    : name=<base name> for gpl / firmware-c, target=<genesis|gba|snes>
               for firmware-c
"""

from typing import Any, Optional, Union

from ..core_types import EXPORT_FORMATS, QuantizedResult
from ..errors import ExportError
from .act import encode_act
from .blocks import block_colours, select_block
from .bmp import bmp_size, decode_indexed_bmp, encode_indexed_bmp, padded_row_bytes
from .firmware import FIRMWARE_TARGETS, bgr555, c_identifier, encode_firmware_c
from .naming import (
    PALETTE_EXTENSIONS,
    base_name_from,
    bmp_filename,
    color_zero_tag,
    palette_filename,
    preview_filename,
)
from .palette_text import encode_gpl, encode_jasc_pal


def export(
    result: QuantizedResult,
    fmt: str,
    block_index: Optional[int] = None,
    **options: Any,
) -> Union[bytes, str]:
    """Encode one artifact. Raises ExportError for bad format or block."""
    if fmt == "bmp":
        return encode_indexed_bmp(result)
    if fmt == "gpl":
        return encode_gpl(result, block_index, name=options.get("name", "image"))
    if fmt == "jasc-pal":
        return encode_jasc_pal(result, block_index)
    if fmt == "act":
        return encode_act(result, block_index)
    if fmt == "firmware-c":
        return encode_firmware_c(
            result,
            block_index,
            name=options.get("name", "image"),
            target=options.get("target", "genesis"),
        )
    raise ExportError(
        f"unknown export format {fmt!r}; expected one of {', '.join(EXPORT_FORMATS)}"
    )


__all__ = [
    "export",
    "encode_indexed_bmp",
    "decode_indexed_bmp",
    "padded_row_bytes",
    "bmp_size",
    "encode_gpl",
    "encode_jasc_pal",
    "encode_act",
    "encode_firmware_c",
    "FIRMWARE_TARGETS",
    "bgr555",
    "c_identifier",
    "select_block",
    "block_colours",
    "PALETTE_EXTENSIONS",
    "base_name_from",
    "bmp_filename",
    "color_zero_tag",
    "palette_filename",
    "preview_filename",
]
