"""
tiled_palette_quant command line.

Quantize image(s) to tile-constrained palette blocks for 8/16-bit consoles and
write an indexed BMP plus per-block palette files.

Usage:
  python -m tiled_palette_quant SRC [--outdir D] [--preset genesis|snes|gba|sms|pce]
      [--tile-size T] [--palettes P] [--colors C] [--bits B] [--fraction F]
      [--dither off|fast|slow] [--dither-weight W] [--dither-pattern NAME]
      [--color-zero MODE] [--color-zero-value R,G,B]
      [--formats bmp,gpl,jasc-pal,act,firmware-c] [--target genesis|gba|snes]
      [--preview] [--jobs N] [--timeout S] [--debug]

Outputs (next to the input unless --outdir is given):
  <base>-<T>x<T>-<P>p<C>c-<u|s|t>.bmp
  <base>-p<b>.gpl / .pal / .act / .c   one per emitted block
  <base>-preview.png                   with --preview

Each image runs in its own worker process. Exit status is 1 if any image
failed and 2 if SRC does not exist.
"""

from __future__ import annotations

import argparse
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .core_types import (
    COLOR_ZERO_BEHAVIORS,
    DITHER_MODES,
    DITHER_PATTERNS,
    EXPORT_FORMATS,
    QuantizationSettings,
    QuantizedResult,
    RGBTuple,
)
from .errors import TileQuantError
from .export import (
    FIRMWARE_TARGETS,
    base_name_from,
    bmp_filename,
    export,
    palette_filename,
    preview_filename,
)
from .image_io import load_source_image, save_preview_png, write_artifact
from .indexed import render_preview
from .settings import PRESETS, settings_from_mapping, settings_from_preset
from .utils import (
    banner,
    block_usage_report,
    config_line,
    debug_log,
    error,
    format_pairs,
    format_seconds,
    line_buffered_stdout,
    log,
    progress_line,
    warn,
)
from .worker import QuantSession

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif", ".tga"}
_OUTPUT_STEM_RE = re.compile(r"(-\d+x\d+-\d+p\d+c-[ust]|-preview)$")


# CLI args & small helpers


def _rgb_arg(text: str) -> RGBTuple:
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError("expected R,G,B")
    try:
        rgb = tuple(int(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError("expected integer R,G,B") from None
    if any(not 0 <= c <= 255 for c in rgb):
        raise argparse.ArgumentTypeError("channels must be 0..255")
    return (rgb[0], rgb[1], rgb[2])


def _formats_arg(text: str) -> List[str]:
    fmts = [f.strip() for f in text.split(",") if f.strip()]
    bad = [f for f in fmts if f not in EXPORT_FORMATS]
    if bad or not fmts:
        raise argparse.ArgumentTypeError(
            f"unknown format(s) {', '.join(bad) or '-'}; "
            f"choose from {', '.join(EXPORT_FORMATS)}"
        )
    return fmts


def parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse CLI arguments.

    Settings flags default to None so that only the ones given override the
    preset (or the built-in defaults when no preset is named).
    """
    parser = argparse.ArgumentParser(
        prog="tiled_palette_quant",
        description="Quantize image(s) to tile-constrained console palettes.",
    )
    parser.add_argument("src", type=Path, help="Input image or folder")
    parser.add_argument(
        "--outdir", type=Path, default=None, help="Output directory (optional)"
    )
    parser.add_argument(
        "--preset", choices=sorted(PRESETS), default=None, help="Hardware preset"
    )
    parser.add_argument("--tile-size", type=int, default=None, help="Tile edge (px)")
    parser.add_argument("--palettes", type=int, default=None, help="Palette blocks")
    parser.add_argument("--colors", type=int, default=None, help="Colours per block")
    parser.add_argument("--bits", type=int, default=None, help="Bits per channel")
    parser.add_argument(
        "--fraction", type=float, default=None, help="Fraction of pixels sampled"
    )
    parser.add_argument("--dither", choices=DITHER_MODES, default=None)
    parser.add_argument("--dither-weight", type=float, default=None)
    parser.add_argument("--dither-pattern", choices=DITHER_PATTERNS, default=None)
    parser.add_argument(
        "--color-zero",
        choices=COLOR_ZERO_BEHAVIORS,
        default=None,
        help="Meaning of slot 0 in every block",
    )
    parser.add_argument(
        "--color-zero-value",
        type=_rgb_arg,
        default=None,
        help="R,G,B used by 'shared' and 'transparentFromColor'",
    )
    parser.add_argument(
        "--formats",
        type=_formats_arg,
        default=["bmp", "gpl"],
        help="Comma-separated outputs (default bmp,gpl)",
    )
    parser.add_argument(
        "--target",
        choices=sorted(FIRMWARE_TARGETS),
        default="genesis",
        help="Console for firmware-c output",
    )
    parser.add_argument("--preview", action="store_true", help="Write a PNG preview")
    parser.add_argument(
        "--jobs", type=int, default=1, help="Files processed in parallel"
    )
    parser.add_argument(
        "--timeout", type=float, default=None, help="Per-image time limit (s)"
    )
    parser.add_argument("--debug", action="store_true", help="Verbose run details")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> QuantizationSettings:
    """Preset (or defaults) plus whichever settings flags were given."""
    flag_fields = {
        "tile_size": args.tile_size,
        "palette_count": args.palettes,
        "colors_per_palette": args.colors,
        "bits_per_channel": args.bits,
        "fraction_of_pixels": args.fraction,
        "dither_mode": args.dither,
        "dither_weight": args.dither_weight,
        "dither_pattern": args.dither_pattern,
        "color_zero_behavior": args.color_zero,
        "color_zero_value": args.color_zero_value,
    }
    overrides = {k: v for k, v in flag_fields.items() if v is not None}
    if args.preset:
        return settings_from_preset(args.preset, **overrides)
    return settings_from_mapping(overrides)


def _settings_pairs(s: QuantizationSettings) -> List[Tuple[str, object]]:
    return [
        ("Tile", f"{s.tile_size}x{s.tile_size}"),
        ("Blocks", f"{s.palette_count}x{s.colors_per_palette}"),
        ("Bits", s.bits_per_channel),
        ("Fraction", s.fraction_of_pixels),
        ("Dither", s.dither_mode),
        ("Colour 0", s.color_zero_behavior),
    ]


def list_inputs(src: Path) -> List[Path]:
    """Images in a folder (sorted, own outputs skipped), or [src] for a file."""
    if not src.is_dir():
        return [src]
    files = [
        p
        for p in src.iterdir()
        if p.is_file()
        and p.suffix.lower() in IMAGE_EXTS
        and not _OUTPUT_STEM_RE.search(p.stem)
    ]
    files.sort(key=lambda p: p.name.lower())
    return files


# Outputs


def write_outputs(
    result: QuantizedResult,
    base: str,
    outdir: Path,
    formats: Sequence[str],
    target: str,
    preview: bool,
) -> List[Path]:
    """Encode and write every requested artifact; returns the paths written."""
    written: List[Path] = []
    for fmt in formats:
        if fmt == "bmp":
            data = export(result, "bmp")
            dst = outdir / bmp_filename(base, result.settings)
            written.append(write_artifact(dst, data))
            continue
        for b in range(len(result.blocks)):
            data = export(result, fmt, b, name=base, target=target)
            dst = outdir / palette_filename(base, b, fmt)
            written.append(write_artifact(dst, data))
    if preview:
        outdir.mkdir(parents=True, exist_ok=True)
        written.append(
            save_preview_png(outdir / preview_filename(base), render_preview(result))
        )
    return written


# Processing


def _process_file(
    path: Path,
    settings: QuantizationSettings,
    args: argparse.Namespace,
    emit: Callable[[str], None],
    live: bool,
) -> bool:
    """Quantize one file and write its outputs. Returns False on failure."""
    t0 = time.perf_counter()
    emit(f"\n=== {path.name} ===")
    try:
        image = load_source_image(path)
        emit(f"[load] Size: {image.width}x{image.height}")

        def show_progress(pct: int) -> None:
            progress_line(f"[quantize] {path.name} {pct:3d}%", final=pct >= 100)

        with QuantSession(timeout=args.timeout, debug=args.debug) as session:
            session.start(settings, image)
            try:
                result = session.wait(show_progress if live else None)
            finally:
                for line in session.log.splitlines():
                    emit(line)

        fid = result.fidelity
        emit(
            "[result] "
            + format_pairs(
                [
                    ("Blocks", len(result.blocks)),
                    ("Colours", result.distinct_color_count),
                    ("Merges", fid.merge_count),
                ]
            )
        )
        if args.debug:
            for block, slot, hex_str, count in block_usage_report(result):
                emit(f"[debug]   P{block} C{slot:<2d} {hex_str}  {count:,}")

        outdir = args.outdir or path.parent
        written = write_outputs(
            result,
            base_name_from(path.name),
            outdir,
            args.formats,
            args.target,
            args.preview,
        )
        for p in written:
            emit(f"[write] {p}")
    except TileQuantError as exc:
        emit(f"[error] {path.name}: {exc}")
        return False
    except OSError as exc:
        emit(f"[error] {path.name}: cannot write output: {exc}")
        return False
    emit(f"[done] {format_seconds(time.perf_counter() - t0)}")
    return True


def _process_one_captured(
    path: Path, settings: QuantizationSettings, args: argparse.Namespace
) -> Tuple[bool, str]:
    lines: List[str] = []
    ok = _process_file(path, settings, args, lines.append, live=False)
    return ok, "\n".join(lines) + "\n"


def _emit_live(line: str) -> None:
    if line.startswith("\n=== ") and line.endswith(" ==="):
        banner(line[5:-4])
    elif line.startswith("[error] "):
        error(line[len("[error] ") :])
    elif line.startswith("[warn] "):
        warn(line[len("[warn] ") :])
    else:
        log(line)


# Entry point


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI entry point.

    Handles a single file or a folder. In folder mode supports --jobs
    parallelism while keeping each file's output together.
    """
    line_buffered_stdout()
    args = parse_cli_args(argv)

    src = args.src
    if not src.exists():
        error(f"not found: {src}")
        return 2

    try:
        settings = settings_from_args(args)
    except TileQuantError as exc:
        error(str(exc))
        return 1

    config_line(
        "run",
        [("CPU cores", os.cpu_count() or 1), ("Jobs", args.jobs)]
        + _settings_pairs(settings),
        debug=False,
    )
    if args.debug:
        debug_log(
            format_pairs(
                [
                    ("Preset", args.preset or "-"),
                    ("Formats", ",".join(args.formats)),
                    ("Target", args.target),
                    ("Timeout", args.timeout or "-"),
                ]
            )
        )

    files = list_inputs(src)
    if not files:
        warn(f"no images found in {src}")
        return 0

    results: List[bool] = []
    if args.jobs <= 1 or len(files) == 1:
        for p in files:
            results.append(_process_file(p, settings, args, _emit_live, live=True))
    else:
        with ThreadPoolExecutor(max_workers=args.jobs) as ex:
            futures = [
                ex.submit(_process_one_captured, p, settings, args) for p in files
            ]
            for f in futures:
                ok, text = f.result()
                results.append(ok)
                print(text, end="", flush=True)

    return 0 if all(results) else 1


__all__ = [
    "parse_cli_args",
    "settings_from_args",
    "list_inputs",
    "write_outputs",
    "main",
]
