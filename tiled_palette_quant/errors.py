"""
Exception hierarchy.

Engine errors stop a run; export errors fail a single export call.
Colour collapse is advisory and never raised (see core_types.FidelityReport).
"""

from __future__ import annotations


class TileQuantError(Exception):
    """Base for every error raised by tiled_palette_quant."""


class EngineError(TileQuantError):
    """A quantization run could not start or did not finish."""


class InvalidSettings(EngineError, ValueError):
    """A settings field is outside its legal range."""

    def __init__(self, field_name: str, value: object, expected: str):
        self.field_name = field_name
        self.value = value
        self.expected = expected
        super().__init__(f"{field_name}={value!r} is invalid: expected {expected}")


class InvalidImage(EngineError, ValueError):
    """Zero-sized, malformed or unreadable source image."""


class EngineCrash(EngineError):
    """The isolated worker died or reported a failure."""


class EngineTimeout(EngineError):
    """The isolated worker did not finish in time and was terminated."""


class ExportError(TileQuantError, ValueError):
    """An exporter was asked for something the result cannot provide."""


class PaletteOverflow(ExportError):
    """The indexed bitmap would need more than 256 colour table entries."""


__all__ = [
    "TileQuantError",
    "EngineError",
    "InvalidSettings",
    "InvalidImage",
    "EngineCrash",
    "EngineTimeout",
    "ExportError",
    "PaletteOverflow",
]
