from __future__ import annotations

"""Output file names for exported artifacts."""

import os
import re
from typing import Optional

from ..core_types import QuantizationSettings
from ..errors import ExportError

PALETTE_EXTENSIONS = {
    "gpl": ".gpl",
    "jasc-pal": ".pal",
    "act": ".act",
    "firmware-c": ".c",
}

_EXT_RE = re.compile(r"\.[a-z0-9]+$", re.IGNORECASE)


def base_name_from(name: Optional[str]) -> str:
    """'dir/Hero Sprite.PNG' -> 'Hero Sprite'; empty or None -> 'image'."""
    if not name:
        return "image"
    stem = _EXT_RE.sub("", os.path.basename(name)).strip()
    return stem or "image"


def color_zero_tag(settings: QuantizationSettings) -> str:
    if settings.is_transparent:
        return "t"
    return "s" if settings.color_zero_behavior == "shared" else "u"


def bmp_filename(base: str, settings: QuantizationSettings) -> str:
    """<base>-<T>x<T>-<P>p<C>c-<u|s|t>.bmp"""
    t = settings.tile_size
    return (
        f"{base}-{t}x{t}-{settings.palette_count}p"
        f"{settings.colors_per_palette}c-{color_zero_tag(settings)}.bmp"
    )


def palette_filename(base: str, block_index: int, fmt: str) -> str:
    """<base>-p<b>.<gpl|pal|act|c>"""
    try:
        ext = PALETTE_EXTENSIONS[fmt]
    except KeyError:
        raise ExportError(f"{fmt!r} is not a palette format") from None
    return f"{base}-p{block_index}{ext}"


def preview_filename(base: str) -> str:
    return f"{base}-preview.png"


__all__ = [
    "PALETTE_EXTENSIONS",
    "base_name_from",
    "color_zero_tag",
    "bmp_filename",
    "palette_filename",
    "preview_filename",
]
