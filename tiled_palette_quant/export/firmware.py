from __future__ import annotations

"""
C source palette for one block, in the form a console toolchain expects.

Targets:
  genesis : SGDK, u16 entries via RGB24_TO_VDPCOLOR(r, g, b) on 8-bit values
  gba     : libtonc, COLOR entries via RGB15(r5, g5, b5)
  snes    : stdint, uint16_t BGR555 literals (r5 | g5 << 5 | b5 << 10)

Five-bit channels are the nearest 5-bit level of each 8-bit slot value.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..channel import channel_level
from ..core_types import QuantizedResult, RGBTuple
from ..errors import ExportError
from .blocks import block_colours, select_block


@dataclass(frozen=True)
class FirmwareTarget:
    include: str
    element_type: str
    element: Callable[[RGBTuple], str]


def _five_bit(rgb: RGBTuple) -> RGBTuple:
    return (
        channel_level(rgb[0], 5),
        channel_level(rgb[1], 5),
        channel_level(rgb[2], 5),
    )


def _genesis(rgb: RGBTuple) -> str:
    return f"RGB24_TO_VDPCOLOR({rgb[0]}, {rgb[1]}, {rgb[2]})"


def _gba(rgb: RGBTuple) -> str:
    r, g, b = _five_bit(rgb)
    return f"RGB15({r}, {g}, {b})"


def bgr555(rgb: RGBTuple) -> int:
    r, g, b = _five_bit(rgb)
    return r | (g << 5) | (b << 10)


def _snes(rgb: RGBTuple) -> str:
    return f"0x{bgr555(rgb):04X}"


FIRMWARE_TARGETS: Dict[str, FirmwareTarget] = {
    "genesis": FirmwareTarget("#include <genesis.h>", "u16", _genesis),
    "gba": FirmwareTarget("#include <tonc.h>", "COLOR", _gba),
    "snes": FirmwareTarget("#include <stdint.h>", "uint16_t", _snes),
}


def c_identifier(name: str) -> str:
    """Replace anything outside [A-Za-z0-9_] with '_'; never start with a digit."""
    ident = re.sub(r"[^a-zA-Z0-9_]", "_", name) or "image"
    return "_" + ident if ident[0].isdigit() else ident


def encode_firmware_c(
    result: QuantizedResult,
    block_index: Optional[int] = None,
    *,
    name: str = "image",
    target: str = "genesis",
) -> str:
    try:
        fw = FIRMWARE_TARGETS[target]
    except KeyError:
        raise ExportError(
            f"unknown firmware target {target!r}; expected one of "
            f"{', '.join(FIRMWARE_TARGETS)}"
        ) from None
    idx = select_block(result, block_index)
    colours = block_colours(result, idx)

    lines: List[str] = [
        fw.include,
        "",
        f"const {fw.element_type} {c_identifier(name)}_pal{idx}[{len(colours)}] = {{",
    ]
    last = len(colours) - 1
    for i, rgb in enumerate(colours):
        comma = "," if i < last else ""
        lines.append(f"  {fw.element(rgb)}{comma}")
    lines.extend(["};", ""])
    return "\n".join(lines)


__all__ = [
    "FirmwareTarget",
    "FIRMWARE_TARGETS",
    "bgr555",
    "c_identifier",
    "encode_firmware_c",
]
