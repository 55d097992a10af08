"""Directory enumeration and per-file image processing for scans."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import os
from pathlib import Path
import uuid

from loguru import logger

from core.models import ImageRecord
from infrastructure.metadata import extract_person_tags
from infrastructure.settings import DEFAULT_EXTENSIONS
from infrastructure.thumbnail_service import THUMBNAIL_MAX_SIZE, generate_thumbnail


def _is_image(name: str, extensions: frozenset[str]) -> bool:
    suffix = Path(name).suffix.lower().lstrip(".")
    return bool(suffix) and suffix in extensions


def iter_image_files(
    source_dir: str | Path,
    include_subdirs: bool = True,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
) -> Iterator[Path]:
    """Yield image files under `source_dir` in a stable, sorted order.

    Directories are walked top-down with both directory and file names
    sorted, so the same tree always yields the same sequence.
    """
    exts = frozenset(e.lower().lstrip(".") for e in extensions)
    for root, dirs, files in os.walk(source_dir, onerror=_log_walk_error):
        dirs.sort()
        if not include_subdirs:
            dirs.clear()
        for name in sorted(files):
            if _is_image(name, exts):
                yield Path(root) / name


def _log_walk_error(error: OSError) -> None:
    logger.warning("Cannot read directory {}: {}", error.filename, error)


def scan_image_files(
    source_dir: str | Path,
    include_subdirs: bool = True,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
) -> list[Path]:
    """Return every image file under `source_dir`."""
    return list(iter_image_files(source_dir, include_subdirs, extensions))


def process_single_image(path: Path, thumbnail_size: int = THUMBNAIL_MAX_SIZE) -> ImageRecord:
    """Read tags and build a thumbnail for one file.

    The record starts SCANNED with no selected person; choosing a bucket is
    always an explicit user action.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Not a file: {path}")
    persons, keywords = extract_person_tags(path)
    return ImageRecord(
        id=uuid.uuid4().hex,
        path=str(path.resolve()),
        filename=path.name,
        persons=tuple(persons),
        keywords=tuple(keywords),
        thumbnail=generate_thumbnail(path, thumbnail_size),
    )
