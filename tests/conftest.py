from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from PIL import Image
from PySide6.QtCore import QCoreApplication
import pytest

from app.viewmodels.session_vm import SessionController
from core.channel import EventChannel
from core.models import (
    ImageRecord,
    MoveProgressEvent,
    MoveRecord,
    MoveRequest,
    ScanProgressEvent,
    UndoResultEvent,
)


class FakeWorker:
    """Records commands; tests push the worker's events by hand."""

    def __init__(self) -> None:
        self.scans: list[tuple[str, bool]] = []
        self.moves: list[tuple[tuple[MoveRequest, ...], str]] = []
        self.undo_calls = 0
        self.cancel_calls = 0
        self.scan_channel: EventChannel[ScanProgressEvent] | None = None
        self.move_channel: EventChannel[MoveProgressEvent] | None = None
        self.undo_channel: EventChannel[UndoResultEvent] | None = None
        # Raised by every begin_* call while set
        self.dispatch_error: Exception | None = None

    def _dispatch(self) -> None:
        if self.dispatch_error is not None:
            raise self.dispatch_error

    def begin_scan(
        self, source_dir: str, include_subdirs: bool, channel: EventChannel[ScanProgressEvent]
    ) -> None:
        self._dispatch()
        self.scans.append((source_dir, include_subdirs))
        self.scan_channel = channel

    def cancel_scan(self) -> None:
        self.cancel_calls += 1

    def begin_move(
        self,
        batch: Sequence[MoveRequest],
        target_dir: str,
        channel: EventChannel[MoveProgressEvent],
    ) -> None:
        self._dispatch()
        self.moves.append((tuple(batch), target_dir))
        self.move_channel = channel

    def begin_undo(self, channel: EventChannel[UndoResultEvent]) -> None:
        self._dispatch()
        self.undo_calls += 1
        self.undo_channel = channel

    # Helpers playing the worker's side

    def emit_scan(self, images: Iterable[ImageRecord], cancelled: bool = False) -> int:
        assert self.scan_channel is not None
        count = 0
        for count, image in enumerate(images, start=1):
            self.scan_channel.put(ScanProgressEvent(scanned=count, image=image))
        self.scan_channel.put(ScanProgressEvent(scanned=count, done=True, cancelled=cancelled))
        return count

    def finish_move(
        self, failures: Sequence[tuple[str, str]] = (), error: str | None = None
    ) -> tuple[MoveRecord, ...]:
        """Report every batch entry as moved except the given failures."""
        assert self.move_channel is not None
        batch, target = self.moves[-1]
        failed = {path for path, _ in failures}
        records = tuple(
            MoveRecord(
                original_path=req.source_path,
                new_path=f"{target}/{req.person}/{req.filename}",
                filename=req.filename,
            )
            for req in batch
            if req.source_path not in failed
        )
        self.move_channel.put(
            MoveProgressEvent(
                moved_count=len(records),
                total=len(batch),
                done=True,
                error=error,
                records=records,
                failures=tuple(failures),
            )
        )
        return records


def make_image(image_id: str, persons: Sequence[str] = (), folder: str = "/photos") -> ImageRecord:
    return ImageRecord(
        id=image_id,
        path=f"{folder}/{image_id}.jpg",
        filename=f"{image_id}.jpg",
        persons=tuple(persons),
    )


@pytest.fixture
def image_factory():
    return make_image


@pytest.fixture
def worker() -> FakeWorker:
    return FakeWorker()


@pytest.fixture
def controller(worker: FakeWorker) -> SessionController:
    return SessionController(worker)


@pytest.fixture
def scanned_controller(controller: SessionController, worker: FakeWorker) -> SessionController:
    """Controller holding a, b (alice), c (bob, carol) and d (no person)."""
    controller.start_scan("/photos")
    worker.emit_scan(
        [
            make_image("a", ["alice"]),
            make_image("b", ["alice"]),
            make_image("c", ["bob", "carol"]),
            make_image("d"),
        ]
    )
    controller.process_events()
    return controller


@pytest.fixture(scope="session")
def qt_app():
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def jpeg_factory(tmp_path: Path):
    """Write a small solid-colour JPEG and return its path."""

    def _make(name: str = "img.jpg", size: tuple[int, int] = (64, 48), **save_kwargs) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, (200, 30, 30)).save(path, format="JPEG", **save_kwargs)
        return path

    return _make
