"""Background worker running scan, move and undo on a Qt thread pool.

Each command is wrapped in a `QRunnable` and started on a private pool with a
single thread, so commands execute one after another in submission order and
every channel receives its events in order. Results never touch the catalog
directly: they are pushed into the session's `EventChannel`.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
import threading

from PySide6.QtCore import QRunnable, QThreadPool
from loguru import logger

from core.channel import EventChannel
from core.models import (
    MoveProgressEvent,
    MoveRequest,
    OperationLog,
    ScanProgressEvent,
    UndoResultEvent,
)
from infrastructure.move_service import MoveService
from infrastructure.scanner import iter_image_files, process_single_image
from infrastructure.settings import DEFAULT_EXTENSIONS
from infrastructure.thumbnail_service import THUMBNAIL_MAX_SIZE


class _ScanTask(QRunnable):
    """Enumerates and processes files, one discovery event per file."""

    def __init__(
        self,
        *,
        source_dir: str,
        include_subdirs: bool,
        channel: EventChannel[ScanProgressEvent],
        cancel_flag: threading.Event,
        extensions: Sequence[str],
        thumbnail_size: int,
    ) -> None:
        super().__init__()
        self._source_dir = source_dir
        self._include_subdirs = include_subdirs
        self._channel = channel
        self._cancel = cancel_flag
        self._extensions = extensions
        self._thumbnail_size = thumbnail_size

    def run(self) -> None:  # type: ignore[override]
        scanned = 0
        try:
            if not Path(self._source_dir).is_dir():
                raise NotADirectoryError(f"Source folder does not exist: {self._source_dir}")
            files = iter_image_files(self._source_dir, self._include_subdirs, self._extensions)
            for path in files:
                if self._cancel.is_set():
                    break
                scanned += 1
                try:
                    image = process_single_image(path, self._thumbnail_size)
                except Exception as ex:  # pylint: disable=broad-exception-caught
                    logger.warning("Failed to process {}: {}", path, ex)
                    self._channel.put(
                        ScanProgressEvent(scanned=scanned, error=f"{path.name}: {ex}")
                    )
                    continue
                self._channel.put(ScanProgressEvent(scanned=scanned, image=image))
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("Scan failed")
            self._channel.put(ScanProgressEvent(scanned=scanned, done=True, error=str(ex)))
            return

        cancelled = self._cancel.is_set()
        if cancelled:
            logger.info("Scan cancelled by user after {} file(s)", scanned)
        self._channel.put(ScanProgressEvent(scanned=scanned, done=True, cancelled=cancelled))


class _MoveTask(QRunnable):
    """Moves a batch, streaming one progress event per file."""

    def __init__(
        self,
        *,
        worker: ThreadPoolWorker,
        batch: Sequence[MoveRequest],
        target_dir: str,
        channel: EventChannel[MoveProgressEvent],
    ) -> None:
        super().__init__()
        self._worker = worker
        self._batch = tuple(batch)
        self._target_dir = target_dir
        self._channel = channel

    def _progress(self, moved: int, total: int, current: str, error: str | None) -> None:
        self._channel.put(
            MoveProgressEvent(moved_count=moved, total=total, current_file=current, error=error)
        )

    def run(self) -> None:  # type: ignore[override]
        total = len(self._batch)
        self._channel.put(MoveProgressEvent(moved_count=0, total=total))
        try:
            log, failed = self._worker.service.move_images(
                self._batch, self._target_dir, self._progress
            )
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("Move batch failed")
            self._channel.put(
                MoveProgressEvent(moved_count=0, total=total, done=True, error=str(ex))
            )
            return

        if log.records:
            self._worker.remember(log)
        self._channel.put(
            MoveProgressEvent(
                moved_count=len(log.records),
                total=total,
                done=True,
                records=log.records,
                failures=tuple(failed),
            )
        )


class _UndoTask(QRunnable):
    """Reverses the worker's last recorded move batch."""

    def __init__(self, *, worker: ThreadPoolWorker, channel: EventChannel[UndoResultEvent]) -> None:
        super().__init__()
        self._worker = worker
        self._channel = channel

    def run(self) -> None:  # type: ignore[override]
        log = self._worker.take_last_operation()
        if log is None:
            self._channel.put(UndoResultEvent(restored_count=0, success=True))
            return
        try:
            restored = self._worker.service.undo_move(log)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("Undo failed: {}", ex)
            self._channel.put(UndoResultEvent(restored_count=0, success=False))
            return
        self._channel.put(
            UndoResultEvent(
                restored_count=len(restored), success=True, restored_paths=tuple(restored)
            )
        )


class ThreadPoolWorker:
    """`IWorker` implementation backed by a single-thread `QThreadPool`.

    The worker keeps its own record of the last successful move; it is the
    source of truth for what an undo restores.
    """

    def __init__(
        self,
        service: MoveService | None = None,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        thumbnail_size: int = THUMBNAIL_MAX_SIZE,
    ) -> None:
        self.service = service or MoveService()
        self._extensions = tuple(extensions)
        self._thumbnail_size = thumbnail_size
        self._cancel_scan = threading.Event()
        self._last_operation: OperationLog | None = None
        self._lock = threading.Lock()
        self._pool = QThreadPool()
        self._pool.setMaxThreadCount(1)

    def begin_scan(
        self, source_dir: str, include_subdirs: bool, channel: EventChannel[ScanProgressEvent]
    ) -> None:
        self._cancel_scan.clear()
        self._pool.start(
            _ScanTask(
                source_dir=source_dir,
                include_subdirs=include_subdirs,
                channel=channel,
                cancel_flag=self._cancel_scan,
                extensions=self._extensions,
                thumbnail_size=self._thumbnail_size,
            )
        )

    def cancel_scan(self) -> None:
        logger.info("Scan cancellation signalled")
        self._cancel_scan.set()

    def begin_move(
        self,
        batch: Sequence[MoveRequest],
        target_dir: str,
        channel: EventChannel[MoveProgressEvent],
    ) -> None:
        self._pool.start(
            _MoveTask(worker=self, batch=batch, target_dir=target_dir, channel=channel)
        )

    def begin_undo(self, channel: EventChannel[UndoResultEvent]) -> None:
        self._pool.start(_UndoTask(worker=self, channel=channel))

    def remember(self, log: OperationLog) -> None:
        """Replace the recorded last move."""
        with self._lock:
            self._last_operation = log

    def take_last_operation(self) -> OperationLog | None:
        """Pop the recorded last move; a second undo finds nothing."""
        with self._lock:
            log, self._last_operation = self._last_operation, None
            return log

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until every queued command finished (for shutdown and tests)."""
        return self._pool.waitForDone(msecs)
