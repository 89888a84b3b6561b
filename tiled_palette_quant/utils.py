from __future__ import annotations

"""
Shared helpers: run-time formatting, per-slot usage counts, monotonic
progress, and tagged print logging.

Log lines go to stdout as '[tag] message' (errors to stderr) so that a
worker can capture them and the CLI can replay them in one piece.
"""

import sys
from typing import Any, Callable, Iterable, List, Optional, Tuple

import numpy as np

from .core_types import QuantizedResult, rgb_to_hex

ProgressCallback = Callable[[int], None]
UsageRow = Tuple[int, int, str, int]  # (block, slot, hex, pixels)


# Formatting


def format_seconds(seconds: float) -> str:
    """0.25 -> '250.0ms', 2.5 -> '2.500s', 75 -> '1m 15.0s'."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.3f}s"
    minutes, rest = divmod(seconds, 60.0)
    return f"{int(minutes)}m {rest:.1f}s"


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "on" if value else "off"
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        return f"{value:.3f}".rstrip("0").rstrip(".")
    return str(value)


def format_pairs(pairs: Iterable[Tuple[str, Any]], sep: str = "  ") -> str:
    """[('Blocks', 4), ('Dither', False)] -> 'Blocks: 4  Dither: off'"""
    return sep.join(f"{name}: {format_value(value)}" for name, value in pairs)


# Palette usage


def block_usage_report(result: QuantizedResult) -> List[UsageRow]:
    """
    Pixels per referenced (block, slot), busiest first, ties by global index.
    """
    cpp = result.colors_per_palette
    pal = result.global_palette()
    counts = np.bincount(result.indices.reshape(-1), minlength=len(pal))
    hits = np.nonzero(counts)[0]
    order = sorted(hits.tolist(), key=lambda gi: (-int(counts[gi]), gi))
    return [(gi // cpp, gi % cpp, rgb_to_hex(pal[gi]), int(counts[gi])) for gi in order]


# Progress


class ProgressTracker:
    """
    Map stage-local fractions onto a 0..100 integer scale and forward only
    strictly increasing values to the callback.
    """

    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback
        self.last = -1

    def report(self, percent: float) -> None:
        if self.callback is None:
            return
        pct = max(0, min(100, int(percent)))
        if pct > self.last:
            self.last = pct
            self.callback(pct)

    def stage(self, lo: int, hi: int, done: int, total: int) -> None:
        """Report `done` of `total` units within the [lo, hi] band."""
        frac = 1.0 if total <= 0 else done / float(total)
        self.report(lo + (hi - lo) * frac)


def progress_line(message: str, final: bool = False) -> None:
    """Rewrite the current terminal line; end it when final."""
    out = sys.stdout
    out.write("\r\033[K" + message + ("\n" if final else ""))
    out.flush()


def line_buffered_stdout() -> None:
    reconfigure = getattr(sys.stdout, "reconfigure", None)
    if reconfigure is None:
        return
    try:
        reconfigure(line_buffering=True, write_through=True)
    except (OSError, ValueError):
        pass  # stream already wrapped or detached


# Logging


def _emit(message: str, tag: Optional[str] = None, stderr: bool = False) -> None:
    text = message if tag is None else f"[{tag}] {message}"
    print(text, file=sys.stderr if stderr else sys.stdout, flush=True)


def log(message: str) -> None:
    _emit(message)


def debug_log(message: str) -> None:
    _emit(message, "debug")


def warn(message: str) -> None:
    _emit(message, "warn")


def error(message: str) -> None:
    _emit(message, "error", stderr=True)


def banner(title: str) -> None:
    _emit(f"\n=== {title} ===")


def config_line(section: str, pairs: Iterable[Tuple[str, Any]], debug: bool) -> None:
    """'[section] Name: value  ...', as a debug line when debug is set."""
    line = f"[{section}] {format_pairs(pairs)}"
    if debug:
        debug_log(line)
    else:
        log(line)


__all__ = [
    "ProgressCallback",
    "UsageRow",
    "format_seconds",
    "format_value",
    "format_pairs",
    "block_usage_report",
    "ProgressTracker",
    "progress_line",
    "line_buffered_stdout",
    "log",
    "debug_log",
    "warn",
    "error",
    "banner",
    "config_line",
]
