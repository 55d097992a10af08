"""State machine driving a single scan run.

The session issues `begin_scan` to the worker and applies the resulting
discovery events to the catalog in arrival order. Cancellation is cooperative:
the session stays RUNNING until the worker's final event arrives.
"""

from __future__ import annotations

from loguru import logger

from core.catalog import Catalog
from core.channel import EventChannel
from core.errors import InvalidInputError, SessionBusyError
from core.models import ScanProgressEvent
from core.services.interfaces import IWorker, ScanState, ScanSummary


class ScanSession:
    """One scan run: IDLE -> RUNNING -> COMPLETED | CANCELLED | FAILED."""

    def __init__(self, worker: IWorker, catalog: Catalog) -> None:
        self._worker = worker
        self._catalog = catalog
        self.state = ScanState.IDLE
        self.channel: EventChannel[ScanProgressEvent] = EventChannel("scan")
        self.source_dir = ""
        self.scanned = 0
        self.appended = 0
        self.errors = 0
        self.cancel_requested = False
        self.summary: ScanSummary | None = None

    @property
    def running(self) -> bool:
        return self.state is ScanState.RUNNING

    def start(self, source_dir: str, include_subdirs: bool) -> None:
        """Clear the catalog and ask the worker to enumerate `source_dir`."""
        if self.state is not ScanState.IDLE:
            raise SessionBusyError(f"Scan session already {self.state.value}")
        if not source_dir or not source_dir.strip():
            raise InvalidInputError("Source directory is required")

        self.source_dir = source_dir
        self.state = ScanState.RUNNING
        try:
            self._worker.begin_scan(source_dir, include_subdirs, self.channel)
        except Exception:
            logger.error("Scan could not be dispatched, catalog kept")
            self.state = ScanState.IDLE
            raise
        # Worker events reach the catalog only through handle()
        self._catalog.clear()
        logger.info("Scan started: {} (subdirs={})", source_dir, include_subdirs)

    def cancel(self) -> bool:
        """Request cooperative cancellation; no-op unless RUNNING."""
        if self.state is not ScanState.RUNNING:
            return False
        if not self.cancel_requested:
            self.cancel_requested = True
            logger.info("Scan cancellation requested after {} image(s)", self.appended)
            self._worker.cancel_scan()
        return True

    def handle(self, event: ScanProgressEvent) -> ScanSummary | None:
        """Apply one discovery event; returns the summary on the final one."""
        if self.state is not ScanState.RUNNING:
            logger.warning("Scan event ignored in state {}", self.state.value)
            return None

        self.scanned = max(self.scanned, event.scanned)
        if event.image is not None and self._catalog.append(event.image):
            self.appended += 1
        if event.error and not event.done:
            self.errors += 1
            logger.warning("Scan item failed: {}", event.error)

        if not event.done:
            return None
        return self._finish(event)

    def _finish(self, event: ScanProgressEvent) -> ScanSummary:
        # The final count can never be lower than what was appended
        self.scanned = max(self.scanned, self.appended)
        error = None
        if event.cancelled or self.cancel_requested:
            self.state = ScanState.CANCELLED
        elif event.error:
            self.state = ScanState.FAILED
            error = event.error
        else:
            self.state = ScanState.COMPLETED
        self.channel.close()

        self.summary = ScanSummary(
            state=self.state,
            scanned=self.scanned,
            appended=self.appended,
            errors=self.errors,
            error=error,
        )
        logger.info(
            "Scan {}: {} scanned, {} appended, {} error(s)",
            self.state.value,
            self.scanned,
            self.appended,
            self.errors,
        )
        return self.summary
