"""Core service interfaces and shared data structures.

This module defines the worker command protocol and the dataclasses that
summarize scan, move and undo outcomes for the controller and UI layers.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from core.channel import EventChannel
from core.models import (
    MoveProgressEvent,
    MoveRequest,
    OperationLog,
    ScanProgressEvent,
    UndoResultEvent,
)


class ScanState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class MoveState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ScanSummary:
    """Terminal outcome of a scan session.

    Attributes:
        state: COMPLETED, CANCELLED or FAILED.
        scanned: Files the worker processed, as reported by its final event.
        appended: Images actually added to the catalog.
        errors: Per-file errors reported while scanning.
        error: Session-level failure reason, if the scan failed.
    """

    state: ScanState
    scanned: int
    appended: int
    errors: int = 0
    error: str | None = None


@dataclass(frozen=True)
class MovePlan:
    """Validated move input built from the selection.

    Attributes:
        batch: Selected images that are ready, in catalog order.
        selected_count: Size of the selection the plan was built from.
        unassigned_count: Selected images skipped because they have no person.
    """

    batch: tuple[MoveRequest, ...]
    selected_count: int
    unassigned_count: int


@dataclass
class MoveResult:
    """Outcome of a move batch.

    Attributes:
        state: COMPLETED or FAILED.
        moved_count: Files moved into their person folders.
        total: Batch size.
        failed: Tuples of (source path, reason) for failures.
        unassigned_count: Selected images left out of the batch.
        undo_record: Reversible description of the batch, if anything moved.
        error: Session-level failure reason, if the batch failed.
    """

    state: MoveState
    moved_count: int
    total: int
    failed: list[tuple[str, str]] = field(default_factory=list)
    unassigned_count: int = 0
    undo_record: OperationLog | None = None
    error: str | None = None

    @property
    def has_undo(self) -> bool:
        """True if this batch can be reversed."""
        return self.undo_record is not None


@dataclass
class UndoResult:
    """Outcome of an undo request.

    Attributes:
        restored_count: Files moved back to their original location.
        success: False only if the worker reported a failed undo.
        expected: Files the undo record covered; restored_count may fall short.
    """

    restored_count: int
    success: bool
    expected: int = 0


class IWorker(Protocol):
    """Background collaborator that performs filesystem and metadata work.

    Every command returns immediately; results arrive through the channel
    handed to the command, in order, ending with a single terminal event.
    Destination files are never overwritten: a colliding name is either
    renamed by the worker or reported as a per-file failure.
    """

    def begin_scan(
        self,
        source_dir: str,
        include_subdirs: bool,
        channel: EventChannel[ScanProgressEvent],
    ) -> None:
        """Enumerate images under `source_dir` in a stable order."""
        ...

    def cancel_scan(self) -> None:
        """Ask the running scan to stop at the next safe point."""
        ...

    def begin_move(
        self,
        batch: Sequence[MoveRequest],
        target_dir: str,
        channel: EventChannel[MoveProgressEvent],
    ) -> None:
        """Move each entry to `target_dir/person/filename`."""
        ...

    def begin_undo(self, channel: EventChannel[UndoResultEvent]) -> None:
        """Reverse the worker's own record of the last move batch."""
        ...
