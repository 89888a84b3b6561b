from __future__ import annotations

from typing import List, Optional

from ..core_types import QuantizedResult, RGBTuple
from ..errors import ExportError


def select_block(result: QuantizedResult, block_index: Optional[int]) -> int:
    """Resolve an optional block index (default 0) against the emitted blocks."""
    idx = 0 if block_index is None else block_index
    if isinstance(idx, bool) or not isinstance(idx, int):
        raise ExportError(f"block_index must be an int, got {block_index!r}")
    if not 0 <= idx < len(result.blocks):
        raise ExportError(
            f"block_index {idx} out of range: result has {len(result.blocks)} block(s)"
        )
    return idx


def block_colours(
    result: QuantizedResult, block_index: Optional[int]
) -> List[RGBTuple]:
    """All colors_per_palette slots of one block, slot order."""
    return list(result.blocks[select_block(result, block_index)].colors)


__all__ = ["select_block", "block_colours"]
