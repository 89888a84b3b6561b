from __future__ import annotations

"""Adobe Color Table: 256 RGB triplets, the block's slots first, rest zero."""

from typing import Optional

import numpy as np

from ..constants import ACT_ENTRIES
from ..core_types import QuantizedResult
from .blocks import block_colours


def encode_act(result: QuantizedResult, block_index: Optional[int] = None) -> bytes:
    table = np.zeros((ACT_ENTRIES, 3), dtype=np.uint8)
    colours = block_colours(result, block_index)
    table[: len(colours)] = np.array(colours, dtype=np.uint8)
    return table.tobytes()


__all__ = ["encode_act"]
