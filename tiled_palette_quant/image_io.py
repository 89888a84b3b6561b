from __future__ import annotations

"""
Image file I/O: decode any Pillow-readable file into an upright sRGB RGBA
SourceImage, write PNG previews, write exporter artifacts.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .core_types import U8RGBA, SourceImage
from .errors import InvalidImage

try:
    from PIL import ImageCms
except ImportError:  # pragma: no cover - Pillow built without littlecms
    ImageCms = None  # type: ignore[assignment]

PathLike = Union[str, Path]


def _embedded_profile_to_srgb(im: Image.Image) -> Optional[Image.Image]:
    """RGBA converted through the embedded ICC profile, or None."""
    profile = im.info.get("icc_profile")
    if not profile or ImageCms is None:
        return None
    try:
        return ImageCms.profileToProfile(
            im.convert("RGBA"),
            ImageCms.ImageCmsProfile(BytesIO(profile)),
            ImageCms.createProfile("sRGB"),
            renderingIntent=ImageCms.Intent.PERCEPTUAL,
            outputMode="RGBA",
        )
    except (OSError, ImageCms.PyCMSError):
        return None  # unusable profile: treat pixels as sRGB


def source_image_from_pil(im: Image.Image) -> SourceImage:
    """Any Pillow image -> SourceImage (EXIF orientation applied, sRGB, RGBA)."""
    upright = ImageOps.exif_transpose(im)
    rgba_im = _embedded_profile_to_srgb(upright) or upright.convert("RGBA")
    rgba = np.asarray(rgba_im, dtype=np.uint8)
    if rgba.ndim != 3 or 0 in rgba.shape[:2]:
        raise InvalidImage(f"decoded image has shape {rgba.shape}")
    return SourceImage.from_array(rgba)


def load_source_image(path: PathLike) -> SourceImage:
    """Decode an image file. Unreadable or empty files raise InvalidImage."""
    p = Path(path)
    try:
        with Image.open(p) as im:
            im.load()
            return source_image_from_pil(im)
    except InvalidImage:
        raise
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise InvalidImage(f"cannot read {p}: {exc}") from exc


def save_preview_png(path: Path, rgba: U8RGBA) -> Path:
    """Write an RGBA preview. The suffix is always .png."""
    dst = path if path.suffix.lower() == ".png" else path.with_suffix(".png")
    Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8)).save(dst)
    return dst


def write_artifact(path: Path, data: Union[bytes, str]) -> Path:
    """Write exporter output; text goes out as UTF-8 with LF newlines."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        path.write_bytes(data)
    else:
        with open(path, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(data)
    return path


__all__ = [
    "source_image_from_pil",
    "load_source_image",
    "save_preview_png",
    "write_artifact",
]
