"""ViewModel owning the image catalog and orchestrating scan, move and undo.

The controller is driven from one logical thread. Worker results are never
applied as they arrive: they wait in per-session channels until the host calls
`process_events` (a UI timer, or a loop in the command-line runner), which is
the only place worker output mutates the catalog.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
import threading
from typing import Any

from loguru import logger

from app.viewmodels.image_vm import ImageVM
from app.viewmodels.preview_vm import MovePreview, build_groups
from core.catalog import Catalog
from core.channel import EventChannel
from core.errors import EmptyBatchError, InvalidInputError, SessionBusyError
from core.models import (
    ImageRecord,
    ImageStatus,
    MoveProgressEvent,
    ScanProgressEvent,
    UndoResultEvent,
)
from core.services.interfaces import (
    IWorker,
    MovePlan,
    MoveResult,
    MoveState,
    ScanState,
    ScanSummary,
    UndoResult,
)
from core.services.move_session import MoveSession, plan_move
from core.services.scan_session import ScanSession
from core.services.undo_slot import UndoSlot

Observer = Callable[[Any], None]


@dataclass(frozen=True)
class SessionSnapshot:
    """Consistent read model for the presentation layer."""

    images: tuple[ImageRecord, ...]
    selected_ids: frozenset[str]
    scanning: bool
    moving: bool
    move_progress: MoveProgressEvent | None
    undo_available: bool
    status_message: str
    last_error: str | None
    total_images: int
    person_count: int
    selected_count: int
    person_names: tuple[str, ...] = field(default_factory=tuple)


class SessionController:
    """Main session view-model.

    Owns one `Catalog`, at most one running scan or move, and the undo slot.
    Only one of scan, move and undo may run at a time; out-of-order calls
    raise `SessionBusyError` rather than relying on disabled buttons.
    """

    def __init__(self, worker: IWorker, strict: bool = False) -> None:
        """Create a SessionController.

        Args:
            worker: Collaborator executing scan/move/undo in the background.
            strict: Raise on catalog invariant violations instead of logging.
        """
        self._worker = worker
        self._lock = threading.RLock()
        self._catalog = Catalog(strict=strict)
        self._scan: ScanSession | None = None
        self._move: MoveSession | None = None
        self._undo = UndoSlot()
        self._observers: list[Observer] = []
        self._move_progress: MoveProgressEvent | None = None
        self.status_message = "Ready"
        self.last_error: str | None = None
        self.last_scan: ScanSummary | None = None
        self.last_move: MoveResult | None = None
        self.last_undo: UndoResult | None = None

    # Observers

    def subscribe(self, observer: Observer) -> None:
        """Call `observer(event)` for every worker event applied."""
        self._observers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, event: Any) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as ex:  # pylint: disable=broad-exception-caught
                logger.error("Observer {} failed: {}", observer, ex)

    # State flags

    @property
    def scanning(self) -> bool:
        return self._scan is not None and self._scan.running

    @property
    def moving(self) -> bool:
        return self._move is not None and self._move.running

    @property
    def undoing(self) -> bool:
        return self._undo.running

    @property
    def busy(self) -> bool:
        """True while a scan, move or undo is in flight."""
        return self.scanning or self.moving or self.undoing

    @property
    def undo_available(self) -> bool:
        return self._undo.available

    def _ensure_idle(self, action: str) -> None:
        if self.scanning:
            raise SessionBusyError(f"Cannot {action} while a scan is running")
        if self.moving:
            raise SessionBusyError(f"Cannot {action} while a move is running")
        if self.undoing:
            raise SessionBusyError(f"Cannot {action} while an undo is running")

    def _report(self, message: str, error: str | None = None) -> None:
        self.status_message = message
        self.last_error = error
        if error:
            logger.warning(message)
        else:
            logger.info(message)

    # Scan

    def start_scan(self, source_dir: str, include_subdirs: bool = True) -> None:
        """Discard the current catalog and scan `source_dir`."""
        with self._lock:
            self._ensure_idle("start a scan")
            session = ScanSession(self._worker, self._catalog)
            try:
                session.start(source_dir, include_subdirs)
            except InvalidInputError as ex:
                self._report("Please choose a source folder first", str(ex))
                raise
            self._scan = session
            self._undo.clear()
            self._move_progress = None
            self._report(f"Scanning {source_dir}...")

    def cancel_scan(self) -> bool:
        """Request cancellation; a safe no-op when no scan is running."""
        with self._lock:
            if self._scan is None or not self._scan.cancel():
                return False
            self._report("Cancelling scan...")
            return True

    # Assignment and selection

    def assign_person(self, image_id: str, person: str) -> bool:
        """Choose `person` as the destination bucket of one image."""
        with self._lock:
            return self._catalog.update_person(image_id, person)

    def auto_assign(self) -> int:
        """Assign every unassigned scanned image its first candidate person.

        Images that already carry a person (e.g. after an undo) keep it.
        Returns the number of images that became ready.
        """
        with self._lock:
            assigned = 0
            for image in list(self._catalog):
                if image.status is not ImageStatus.SCANNED or not image.persons:
                    continue
                person = image.selected_person or image.persons[0]
                if self._catalog.update_person(image.id, person):
                    assigned += 1
            return assigned

    def toggle_select(self, image_id: str) -> bool:
        with self._lock:
            return self._catalog.toggle(image_id)

    def select(self, image_ids: list[str]) -> None:
        with self._lock:
            self._catalog.select(image_ids)

    def select_all(self) -> int:
        """Select every ready image, or clear the selection if one exists."""
        with self._lock:
            if self._catalog.selected_ids():
                self._catalog.clear_selection()
                return 0
            ready = [image.id for image in self._catalog if image.is_ready]
            self._catalog.select(ready)
            return len(ready)

    def clear_selection(self) -> None:
        with self._lock:
            self._catalog.clear_selection()

    # Move

    def preview_move(self, target_dir: str) -> MovePreview:
        """Describe what `start_move(target_dir)` would do, without doing it."""
        with self._lock:
            plan = plan_move(self._catalog, self._catalog.selected_ids())
            items = []
            for req in plan.batch:
                image = self._catalog.get(req.image_id)
                if image is not None:
                    items.append(ImageVM(replace(image)))
            return MovePreview(
                target_dir=target_dir,
                selected_count=plan.selected_count,
                valid_count=len(plan.batch),
                unassigned_count=plan.unassigned_count,
                groups=build_groups(target_dir, items),
            )

    def start_move(self, target_dir: str) -> MovePlan:
        """Move the selected ready images into `target_dir/<person>/`."""
        with self._lock:
            self._ensure_idle("start a move")
            session = MoveSession(self._worker, self._catalog, on_progress=self._on_move_progress)
            try:
                plan = session.start(target_dir, self._catalog.selected_ids())
            except EmptyBatchError as ex:
                self._report(
                    "Nothing to move: select images and assign a person first", str(ex)
                )
                raise
            except InvalidInputError as ex:
                self._report("Please choose a target folder first", str(ex))
                raise
            self._move = session
            self._move_progress = session.progress
            self._report(f"Moving {len(plan.batch)} file(s)...")
            return plan

    def _on_move_progress(self, event: MoveProgressEvent) -> None:
        self._move_progress = event
        self._notify(event)

    # Undo

    def undo(self) -> UndoResult | None:
        """Reverse the last move batch.

        Returns the result right away when there is nothing to undo;
        otherwise None, and the outcome arrives through `process_events`.
        """
        with self._lock:
            self._ensure_idle("undo")
            result = self._undo.execute(self._worker)
            if result is not None:
                self.last_undo = result
                self._report("Nothing to undo")
                return result
            self._report("Undoing last move...")
            return None

    # Event application

    def process_events(self, timeout: float | None = None) -> int:
        """Apply pending worker events; returns how many were applied.

        With a `timeout`, wait up to that long for the first event of the
        running session.
        """
        channel = self._active_channel()
        if channel is None:
            return 0
        events = channel.drain(timeout)
        applied = 0
        with self._lock:
            for event in events:
                if not self._apply(event):
                    logger.warning("Dropped event after session end: {}", event)
                    continue
                applied += 1
        return applied

    def _active_channel(self) -> EventChannel[Any] | None:
        with self._lock:
            if self._scan is not None:
                return self._scan.channel
            if self._move is not None:
                return self._move.channel
            if self._undo.running:
                return self._undo.channel
            return None

    def _apply(self, event: Any) -> bool:
        if isinstance(event, ScanProgressEvent):
            return self._apply_scan(event)
        if isinstance(event, MoveProgressEvent):
            return self._apply_move(event)
        if isinstance(event, UndoResultEvent):
            return self._apply_undo(event)
        logger.error("Unknown worker event: {!r}", event)
        return False

    def _apply_scan(self, event: ScanProgressEvent) -> bool:
        session = self._scan
        if session is None or not session.running:
            return False
        summary = session.handle(event)
        self._notify(event)
        if summary is None:
            return True
        self._scan = None
        self.last_scan = summary
        if summary.state is ScanState.CANCELLED:
            self._report(f"Scan cancelled: {summary.appended} image(s) loaded")
        elif summary.state is ScanState.FAILED:
            self._report(
                f"Scan failed: {summary.error} ({summary.appended} image(s) loaded)",
                summary.error,
            )
        else:
            message = (
                f"Scan complete: {summary.appended} image(s), "
                f"{len(self._catalog.person_names())} person(s)"
            )
            if summary.errors:
                message += f", {summary.errors} unreadable"
            self._report(message)
        return True

    def _apply_move(self, event: MoveProgressEvent) -> bool:
        session = self._move
        if session is None or not session.running:
            return False
        result = session.handle(event)
        if result is None:
            return True
        self._move = None
        self.last_move = result
        self._undo.record(result)
        self._catalog.clear_selection()
        if result.state is MoveState.FAILED:
            self._report(
                f"Move failed: {result.error} ({result.moved_count} of {result.total} moved)",
                result.error,
            )
            return True
        message = f"Moved {result.moved_count} of {result.total} file(s)"
        if result.failed:
            message += f", {len(result.failed)} failed"
        if result.unassigned_count:
            message += f", {result.unassigned_count} without a person skipped"
        self._report(message, result.failed[0][1] if result.failed else None)
        return True

    def _apply_undo(self, event: UndoResultEvent) -> bool:
        record = self._undo.pending
        if record is None:
            return False
        restored = set(event.restored_paths)
        if not restored and event.success and event.restored_count == len(record.records):
            restored = {r.original_path for r in record.records}
        reverted = []
        for path in restored:
            image = self._catalog.find_by_path(path)
            if image is not None and image.status is ImageStatus.MOVED:
                reverted.append(image.id)
        self._catalog.mark_status(reverted, ImageStatus.SCANNED)

        result = self._undo.complete(event)
        self.last_undo = result
        self._notify(event)
        if not result.success:
            self._report(
                f"Undo failed: restored {result.restored_count} of {result.expected} file(s)",
                "undo failed",
            )
        elif result.restored_count < result.expected:
            self._report(f"Undo restored {result.restored_count} of {result.expected} file(s)")
        else:
            self._report(f"Undo complete: restored {result.restored_count} file(s)")
        return True

    # Read model

    def snapshot(self) -> SessionSnapshot:
        """Return a consistent view of the whole session."""
        with self._lock:
            images = self._catalog.snapshot()
            selected = self._catalog.selected_ids()
            names = tuple(self._catalog.person_names())
            return SessionSnapshot(
                images=images,
                selected_ids=selected,
                scanning=self.scanning,
                moving=self.moving,
                move_progress=self._move_progress,
                undo_available=self._undo.available,
                status_message=self.status_message,
                last_error=self.last_error,
                total_images=len(images),
                person_count=len(names),
                selected_count=len(selected),
                person_names=names,
            )

    @property
    def total_images(self) -> int:
        with self._lock:
            return len(self._catalog)

    @property
    def person_count(self) -> int:
        with self._lock:
            return len(self._catalog.person_names())

    @property
    def selected_count(self) -> int:
        with self._lock:
            return len(self._catalog.selected_ids())

    def image(self, image_id: str) -> ImageVM | None:
        """Display wrapper for one image, detached from the live catalog."""
        with self._lock:
            record = self._catalog.get(image_id)
            return ImageVM(replace(record)) if record is not None else None
