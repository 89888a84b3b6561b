from __future__ import annotations

"""
Text palette formats for one block: GIMP .gpl and JASC-PAL.

Both are LF-terminated with a trailing newline and list every slot,
unused ones included, as 'R G B' decimal triples.
"""

from typing import List, Optional

from ..core_types import QuantizedResult, RGBTuple
from .blocks import block_colours, select_block


def _rgb_lines(colours: List[RGBTuple]) -> List[str]:
    return [f"{r} {g} {b}" for r, g, b in colours]


def encode_gpl(
    result: QuantizedResult, block_index: Optional[int] = None, *, name: str = "image"
) -> str:
    idx = select_block(result, block_index)
    colours = block_colours(result, idx)
    lines = [
        "GIMP Palette",
        f"Name: {name} P{idx}",
        f"Columns: {len(colours)}",
        "#",
    ]
    lines.extend(_rgb_lines(colours))
    return "\n".join(lines) + "\n"


def encode_jasc_pal(result: QuantizedResult, block_index: Optional[int] = None) -> str:
    colours = block_colours(result, block_index)
    lines = ["JASC-PAL", "0100", str(len(colours))]
    lines.extend(_rgb_lines(colours))
    return "\n".join(lines) + "\n"


__all__ = ["encode_gpl", "encode_jasc_pal"]
