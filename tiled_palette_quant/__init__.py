# tiled_palette_quant/__init__.py
"""
tiled_palette_quant package.

Purpose:
  Quantize truecolour images to the tile-constrained palette model of 8/16-bit
  consoles (Sega Genesis and friends): a few palette blocks of a few colours,
  one block per tile, reduced channel depth. See cli.py for the command line.

Public API:
  run             : synchronous engine run -> QuantizedResult.
  QuantSession    : isolated runs in a worker process with progress and tokens.
  run_isolated    : one-shot isolated run.
  export          : encode a result as bmp / gpl / jasc-pal / act / firmware-c.
  settings        : validation, presets and legacy option translation.
  core_types      : settings, image and result value objects.
  errors          : exception hierarchy.
  utils           : shared helpers (formatting, progress, logging).

Quick start:
  from tiled_palette_quant import QuantizationSettings, SourceImage, run, export
  result = run(QuantizationSettings(), SourceImage.from_array(rgba))
  bmp = export(result, "bmp")
"""

__version__ = "0.1.0"

# Re-export namespaces for convenience.
from . import core_types
from . import errors
from . import settings
from . import utils

from .core_types import (  # noqa: E402
    FidelityReport,
    PaletteBlock,
    QuantizationSettings,
    QuantizedResult,
    SourceImage,
    TileAssignment,
)
from .engine import run  # noqa: E402
from .errors import (  # noqa: E402
    EngineCrash,
    EngineError,
    EngineTimeout,
    ExportError,
    InvalidImage,
    InvalidSettings,
    PaletteOverflow,
    TileQuantError,
)
from .export import export  # noqa: E402
from .indexed import palettes_as_lists, render_preview  # noqa: E402
from .settings import (  # noqa: E402
    PRESETS,
    settings_from_legacy,
    settings_from_mapping,
    settings_from_preset,
)
from .worker import EngineMessage, QuantSession, run_isolated  # noqa: E402

__all__ = [
    "__version__",
    "core_types",
    "errors",
    "settings",
    "utils",
    "FidelityReport",
    "PaletteBlock",
    "QuantizationSettings",
    "QuantizedResult",
    "SourceImage",
    "TileAssignment",
    "run",
    "EngineCrash",
    "EngineError",
    "EngineTimeout",
    "ExportError",
    "InvalidImage",
    "InvalidSettings",
    "PaletteOverflow",
    "TileQuantError",
    "export",
    "palettes_as_lists",
    "render_preview",
    "PRESETS",
    "settings_from_legacy",
    "settings_from_mapping",
    "settings_from_preset",
    "EngineMessage",
    "QuantSession",
    "run_isolated",
]
