"""Single-generation undo for the most recent move batch."""

from __future__ import annotations

from loguru import logger

from core.channel import EventChannel
from core.models import OperationLog, UndoResultEvent
from core.services.interfaces import IWorker, MoveResult, UndoResult


class UndoSlot:
    """Holds at most one `OperationLog`.

    The worker decides which files get restored; the slot only gates whether
    an undo is offered. Restoration is best effort and never retried: the slot
    is cleared once the worker reports back, whatever the outcome.
    """

    def __init__(self) -> None:
        self._record: OperationLog | None = None
        self._pending: OperationLog | None = None
        self.channel: EventChannel[UndoResultEvent] | None = None

    @property
    def available(self) -> bool:
        """True if an undo can be offered."""
        return self._record is not None and self._pending is None

    @property
    def running(self) -> bool:
        return self._pending is not None

    @property
    def pending(self) -> OperationLog | None:
        """Record currently being reversed by the worker."""
        return self._pending

    def peek(self) -> OperationLog | None:
        return self._record

    def record(self, result: MoveResult) -> bool:
        """Remember `result` if it moved anything, replacing the previous record."""
        if result.undo_record is None:
            return False
        if self._record is not None:
            logger.info("Replacing undo record {}", self._record.operation_id)
        self._record = result.undo_record
        return True

    def clear(self) -> None:
        self._record = None

    def execute(self, worker: IWorker) -> UndoResult | None:
        """Dispatch the reverse move.

        Returns a trivial successful `UndoResult` right away when there is
        nothing to undo, otherwise None; the real result arrives via `complete`.
        """
        if self._pending is not None:
            return None
        if self._record is None:
            logger.info("Undo requested with nothing to undo")
            return UndoResult(restored_count=0, success=True, expected=0)

        self._pending = self._record
        self.channel = EventChannel("undo")
        logger.info(
            "Undo started for {} ({} file(s))",
            self._pending.operation_id,
            len(self._pending.records),
        )
        try:
            worker.begin_undo(self.channel)
        except Exception:
            logger.error("Undo could not be dispatched, record kept")
            self._pending = None
            self.channel = None
            raise
        return None

    def complete(self, event: UndoResultEvent) -> UndoResult:
        """Settle the pending undo and empty the slot."""
        expected = len(self._pending.records) if self._pending is not None else 0
        self._pending = None
        self._record = None
        if self.channel is not None:
            self.channel.close()
        result = UndoResult(
            restored_count=event.restored_count, success=event.success, expected=expected
        )
        if result.restored_count < expected:
            logger.warning("Undo restored {} of {} file(s)", result.restored_count, expected)
        else:
            logger.info("Undo restored {} file(s)", result.restored_count)
        return result
