"""Thumbnail generation with Pillow.

Thumbnails are small JPEGs returned as `data:` URIs so any rendering layer can
display them without touching the filesystem again. Optional Pillow-HEIF
support registers the HEIC/HEIF opener when installed.
"""

from __future__ import annotations

import base64
import io
from pathlib import Path

from loguru import logger
from PIL import Image, ImageOps

try:  # pragma: no cover - optional dependency
    from pillow_heif import register_heif_opener  # type: ignore

    register_heif_opener()
    PIL_HEIF_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    PIL_HEIF_AVAILABLE = False

THUMBNAIL_MAX_SIZE = 300
JPEG_QUALITY = 85


def generate_thumbnail(path: str | Path, max_size: int = THUMBNAIL_MAX_SIZE) -> str | None:
    """Return a JPEG data URI whose long edge is at most `max_size` pixels.

    Images smaller than `max_size` are not upscaled. Returns None if the
    file cannot be decoded.
    """
    side = max(1, int(max_size or THUMBNAIL_MAX_SIZE))
    try:
        with Image.open(path) as im:
            im = ImageOps.exif_transpose(im)
            if im.mode not in ("RGB", "L"):
                im = im.convert("RGB")
            im.thumbnail((side, side), Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            im.save(buf, format="JPEG", quality=JPEG_QUALITY)
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as ex:
        logger.debug("Thumbnail failed for {}: {}", path, ex)
        return None
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"
