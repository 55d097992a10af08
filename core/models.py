"""Core domain models for discovered images, move records and worker events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ImageStatus(Enum):
    """Lifecycle of one image within a session."""

    SCANNED = "Scanned"
    READY = "Ready"
    MOVING = "Moving"
    MOVED = "Moved"
    ERRORED = "Errored"


@dataclass
class ImageRecord:
    """A single image discovered by a scan.

    `persons` and `keywords` are fixed at discovery time. `selected_person` is
    the destination bucket chosen by the user and must be one of `persons`.
    """

    id: str
    path: str
    filename: str
    persons: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    thumbnail: str | None = None
    selected_person: str | None = None
    status: ImageStatus = ImageStatus.SCANNED
    error: str | None = None

    @property
    def is_ready(self) -> bool:
        """True if the image has a person and is eligible for the next move."""
        return self.status is ImageStatus.READY and self.selected_person is not None


@dataclass(frozen=True)
class MoveRequest:
    """One entry of a move batch handed to the worker."""

    image_id: str
    source_path: str
    filename: str
    person: str


@dataclass(frozen=True)
class MoveRecord:
    """A file the worker actually moved."""

    original_path: str
    new_path: str
    filename: str


@dataclass(frozen=True)
class OperationLog:
    """Everything needed to reverse one move batch."""

    operation_id: str
    timestamp: str
    target_dir: str
    records: tuple[MoveRecord, ...] = ()


@dataclass(frozen=True)
class ScanProgressEvent:
    scanned: int
    image: ImageRecord | None = None
    done: bool = False
    cancelled: bool = False
    error: str | None = None


@dataclass(frozen=True)
class MoveProgressEvent:
    """Progress of a running move batch.

    `records` and `failures` are only populated on the final event, where
    `failures` holds (source_path, reason) pairs.
    """

    moved_count: int
    total: int
    current_file: str = ""
    done: bool = False
    error: str | None = None
    records: tuple[MoveRecord, ...] = ()
    failures: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class UndoResultEvent:
    restored_count: int
    success: bool
    restored_paths: tuple[str, ...] = ()
