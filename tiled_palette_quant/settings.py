from __future__ import annotations

"""
Settings validation, hardware presets and mapping / legacy translation.

All entry points return a validated, normalised QuantizationSettings or raise
InvalidSettings naming the offending field.
"""

import math
from dataclasses import fields, replace
from typing import Any, Dict, Mapping

import numpy as np

from .constants import (
    CHANNEL_MAX,
    MIN_TILE_SIZE,
    RANGE_BITS_PER_CHANNEL,
    RANGE_COLORS_PER_PALETTE,
    RANGE_DITHER_WEIGHT,
    RANGE_PALETTE_COUNT,
)
from .core_types import (
    COLOR_ZERO_BEHAVIORS,
    DITHER_MODES,
    DITHER_PATTERNS,
    QuantizationSettings,
    RGBTuple,
    SourceImage,
)
from .errors import InvalidImage, InvalidSettings

# Presets

PRESETS: Dict[str, QuantizationSettings] = {
    # Mega Drive VDP: 4 CRAM lines of 16, 3 bits per channel
    "genesis": QuantizationSettings(8, 4, 16, 3),
    # SNES CGRAM: 8 BG palettes of 16, BGR555
    "snes": QuantizationSettings(8, 8, 16, 5),
    # GBA: 16 BG palettes of 16 in hardware, capped to 8 blocks here
    "gba": QuantizationSettings(8, 8, 16, 5),
    # Master System: 2 palettes of 16, 2 bits per channel
    "sms": QuantizationSettings(8, 2, 16, 2),
    # PC Engine VCE: 16 BG palettes of 16 in hardware, 3 bits per channel
    "pce": QuantizationSettings(8, 8, 16, 3),
}


# Validation


def _int_field(name: str, value: Any, lo: int, hi: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidSettings(name, value, f"an integer in {lo}..{hi}")
    if not lo <= int(value) <= hi:
        raise InvalidSettings(name, value, f"an integer in {lo}..{hi}")
    return int(value)


def _float_field(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        raise InvalidSettings(name, value, "a number")
    f = float(value)
    if not math.isfinite(f):
        raise InvalidSettings(name, value, "a finite number")
    return f


def _choice_field(name: str, value: Any, choices: tuple) -> str:
    if value not in choices:
        raise InvalidSettings(name, value, "one of " + ", ".join(choices))
    return str(value)


def _rgb_field(name: str, value: Any) -> RGBTuple:
    try:
        parts = tuple(value)
    except TypeError:
        raise InvalidSettings(name, value, "an (r, g, b) triple") from None
    if len(parts) != 3:
        raise InvalidSettings(name, value, "an (r, g, b) triple")
    out = []
    for p in parts:
        if isinstance(p, bool) or not isinstance(p, (int, np.integer)):
            raise InvalidSettings(name, value, f"integers in 0..{CHANNEL_MAX}")
        if not 0 <= int(p) <= CHANNEL_MAX:
            raise InvalidSettings(name, value, f"integers in 0..{CHANNEL_MAX}")
        out.append(int(p))
    return (out[0], out[1], out[2])


def validate_settings(settings: QuantizationSettings) -> QuantizationSettings:
    """Check every field against its legal range; return a normalised copy."""
    if not isinstance(settings, QuantizationSettings):
        raise InvalidSettings("settings", settings, "a QuantizationSettings")

    tile_size = settings.tile_size
    if isinstance(tile_size, bool) or not isinstance(tile_size, (int, np.integer)):
        raise InvalidSettings("tile_size", tile_size, f"an integer >= {MIN_TILE_SIZE}")
    if int(tile_size) < MIN_TILE_SIZE:
        raise InvalidSettings("tile_size", tile_size, f"an integer >= {MIN_TILE_SIZE}")

    fraction = _float_field("fraction_of_pixels", settings.fraction_of_pixels)
    if not 0.0 < fraction <= 1.0:
        raise InvalidSettings("fraction_of_pixels", fraction, "0 < f <= 1")

    weight = _float_field("dither_weight", settings.dither_weight)
    lo, hi = RANGE_DITHER_WEIGHT
    if not lo <= weight <= hi:
        raise InvalidSettings("dither_weight", weight, f"{lo} <= w <= {hi}")

    return QuantizationSettings(
        tile_size=int(tile_size),
        palette_count=_int_field(
            "palette_count", settings.palette_count, *RANGE_PALETTE_COUNT
        ),
        colors_per_palette=_int_field(
            "colors_per_palette", settings.colors_per_palette, *RANGE_COLORS_PER_PALETTE
        ),
        bits_per_channel=_int_field(
            "bits_per_channel", settings.bits_per_channel, *RANGE_BITS_PER_CHANNEL
        ),
        fraction_of_pixels=fraction,
        dither_mode=_choice_field("dither_mode", settings.dither_mode, DITHER_MODES),
        dither_weight=weight,
        dither_pattern=_choice_field(
            "dither_pattern", settings.dither_pattern, DITHER_PATTERNS
        ),
        color_zero_behavior=_choice_field(
            "color_zero_behavior", settings.color_zero_behavior, COLOR_ZERO_BEHAVIORS
        ),
        color_zero_value=_rgb_field("color_zero_value", settings.color_zero_value),
    )


def validate_image(image: SourceImage) -> SourceImage:
    """Reject zero-sized or malformed pixel buffers."""
    if not isinstance(image, SourceImage):
        raise InvalidImage(f"expected a SourceImage, got {type(image).__name__}")
    if image.width <= 0 or image.height <= 0:
        raise InvalidImage(f"image is {image.width}x{image.height}; need at least 1x1")
    rgba = image.rgba
    if not isinstance(rgba, np.ndarray) or rgba.dtype != np.uint8:
        raise InvalidImage("pixel buffer must be a uint8 array")
    if rgba.shape != (image.height, image.width, 4):
        raise InvalidImage(
            f"pixel buffer shape {rgba.shape} does not match "
            f"{image.height}x{image.width}x4"
        )
    return image


# Construction helpers


_FIELD_NAMES = tuple(f.name for f in fields(QuantizationSettings))


def settings_from_mapping(
    mapping: Mapping[str, Any], base: QuantizationSettings = QuantizationSettings()
) -> QuantizationSettings:
    """Override `base` with snake_case keys from `mapping`, then validate."""
    unknown = [k for k in mapping if k not in _FIELD_NAMES]
    if unknown:
        raise InvalidSettings(unknown[0], mapping[unknown[0]], "a known setting")
    values = dict(mapping)
    if "color_zero_value" in values and values["color_zero_value"] is not None:
        values["color_zero_value"] = tuple(values["color_zero_value"])
    return validate_settings(replace(base, **values))


def settings_from_preset(name: str, **overrides: Any) -> QuantizationSettings:
    """Hardware preset with optional field overrides."""
    try:
        base = PRESETS[name]
    except KeyError:
        raise InvalidSettings("preset", name, "one of " + ", ".join(PRESETS)) from None
    return settings_from_mapping(overrides, base)


# Legacy option objects

_LEGACY_DITHER = {0: "off", 1: "fast", 2: "slow"}
_LEGACY_PATTERN = dict(enumerate(DITHER_PATTERNS))
_LEGACY_COLOR_ZERO = dict(enumerate(COLOR_ZERO_BEHAVIORS))


def _clamp01(value: Any, default: float = 1.0) -> float:
    v = default if value is None else float(value)
    return max(0.0, min(1.0, v))


def _c8(value: Any) -> int:
    v = 0 if value is None else float(value)
    return int(max(0, min(CHANNEL_MAX, math.floor(v + 0.5))))


def _legacy_enum(name: str, value: Any, table: Dict[int, str]) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, np.integer)) and int(value) in table:
        return table[int(value)]
    raise InvalidSettings(name, value, "one of " + ", ".join(table.values()))


def settings_from_legacy(options: Mapping[str, Any]) -> QuantizationSettings:
    """
    Translate a camelCase option object into validated settings.

    Accepts both shapes the browser tool used:
      UI state    : tileSize, palettes, colorsPerPalette, bitsPerChannel,
                    fractionOfPixels, dither (bool), ditherMode, ditherWeight,
                    ditherPattern, index0, color0Behaviour, color0 {r, g, b}
      worker opts : tileWidth/tileHeight, numPalettes, dither (0/1/2),
                    ditherPattern (0..5), colorZeroBehaviour (0..3),
                    colorZeroValue [r, g, b]

    An explicit ditherMode wins over the boolean dither flag, which maps to
    "fast". color0Behaviour wins over index0.
    """
    o = dict(options)
    d = QuantizationSettings()

    tile = o.get("tileSize", o.get("tileWidth", d.tile_size))
    if "tileHeight" in o and o["tileHeight"] != tile:
        raise InvalidSettings("tileHeight", o["tileHeight"], f"square tiles ({tile})")

    mode = o.get("ditherMode")
    raw = o.get("dither")
    if mode is None:
        if isinstance(raw, bool):
            mode = "fast" if raw else "off"
        elif raw is None:
            mode = "off"
        else:
            mode = _legacy_enum("dither", raw, _LEGACY_DITHER)

    behaviour = o.get("color0Behaviour", o.get("colorZeroBehaviour"))
    if behaviour is None:
        behaviour = "shared" if o.get("index0") == "shared" else "unique"
    behaviour = _legacy_enum("color0Behaviour", behaviour, _LEGACY_COLOR_ZERO)

    if "colorZeroValue" in o:
        zero = tuple(_c8(v) for v in o["colorZeroValue"])
    else:
        c0 = o.get("color0") or {}
        zero = (_c8(c0.get("r")), _c8(c0.get("g")), _c8(c0.get("b")))

    return validate_settings(
        QuantizationSettings(
            tile_size=tile,
            palette_count=o.get("palettes", o.get("numPalettes", d.palette_count)),
            colors_per_palette=o.get("colorsPerPalette", d.colors_per_palette),
            bits_per_channel=o.get("bitsPerChannel", d.bits_per_channel),
            fraction_of_pixels=_clamp01(o.get("fractionOfPixels")),
            dither_mode=mode,
            dither_weight=_clamp01(o.get("ditherWeight")),
            dither_pattern=_legacy_enum(
                "ditherPattern", o.get("ditherPattern", "diag4"), _LEGACY_PATTERN
            ),
            color_zero_behavior=behaviour,
            color_zero_value=zero,
        )
    )


__all__ = [
    "PRESETS",
    "validate_settings",
    "validate_image",
    "settings_from_mapping",
    "settings_from_preset",
    "settings_from_legacy",
]
