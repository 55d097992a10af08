from __future__ import annotations

from pathlib import Path

from PIL import Image
import pytest

from app.viewmodels.session_vm import SessionController
from core.models import ImageStatus
from core.services.interfaces import ScanState
from infrastructure.move_service import MoveService
from infrastructure import worker as worker_module
from infrastructure.worker import ThreadPoolWorker

WAIT_MS = 10_000

PEOPLE_XMP = """<x:xmpmeta xmlns:x="adobe:ns:meta/">
 <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
  <rdf:Description xmlns:lr="http://ns.adobe.com/lightroom/1.0/">
   <lr:hierarchicalSubject>
    <rdf:Bag><rdf:li>People|{name}</rdf:li></rdf:Bag>
   </lr:hierarchicalSubject>
  </rdf:Description>
 </rdf:RDF>
</x:xmpmeta>"""


@pytest.fixture
def photo_dir(tmp_path: Path, jpeg_factory) -> Path:
    for name, person in (("one.jpg", "alice"), ("two.jpg", "bob"), ("sub/three.jpg", None)):
        path = jpeg_factory(f"src/{name}")
        if person:
            with path.open("ab") as f:
                f.write(PEOPLE_XMP.format(name=person).encode("utf-8"))
    return tmp_path / "src"


def _run(vm: SessionController, worker: ThreadPoolWorker) -> None:
    assert worker.wait_for_done(WAIT_MS)
    vm.process_events()


def test_scan_move_undo_on_disk(qt_app, tmp_path, photo_dir):
    worker = ThreadPoolWorker(MoveService(log_dir=str(tmp_path / "logs")))
    vm = SessionController(worker)
    target = tmp_path / "sorted"

    vm.start_scan(str(photo_dir))
    _run(vm, worker)

    assert vm.last_scan.state is ScanState.COMPLETED
    assert [image.filename for image in vm.snapshot().images] == [
        "one.jpg",
        "two.jpg",
        "three.jpg",
    ]
    assert vm.snapshot().person_names == ("alice", "bob")

    assert vm.auto_assign() == 2
    assert vm.select_all() == 2
    vm.start_move(str(target))
    _run(vm, worker)

    assert vm.last_move.moved_count == 2
    assert (target / "alice" / "one.jpg").exists()
    assert (target / "bob" / "two.jpg").exists()
    assert not (photo_dir / "one.jpg").exists()
    assert vm.undo_available

    assert vm.undo() is None
    _run(vm, worker)

    assert vm.last_undo.restored_count == 2
    assert (photo_dir / "one.jpg").exists()
    assert (photo_dir / "two.jpg").exists()
    assert all(image.status is ImageStatus.SCANNED for image in vm.snapshot().images)
    assert list((tmp_path / "logs").glob("move_*.csv"))


def test_scan_of_missing_folder_fails(qt_app, tmp_path):
    worker = ThreadPoolWorker()
    vm = SessionController(worker)

    vm.start_scan(str(tmp_path / "missing"))
    _run(vm, worker)

    assert vm.last_scan.state is ScanState.FAILED
    assert "does not exist" in vm.last_error


def test_scan_without_subfolders(qt_app, photo_dir):
    worker = ThreadPoolWorker()
    vm = SessionController(worker)

    vm.start_scan(str(photo_dir), include_subdirs=False)
    _run(vm, worker)

    assert vm.total_images == 2


def test_fresh_worker_has_no_last_operation(qt_app):
    worker = ThreadPoolWorker()
    assert worker.take_last_operation() is None


def _small_tree(jpeg_factory, folder: str, big: tuple[int, int] = (20, 20)) -> None:
    for name, size in (("a.jpg", (20, 20)), ("b.jpg", big), ("c.jpg", (20, 20))):
        jpeg_factory(f"{folder}/{name}", size=size)


def test_oversized_image_does_not_abort_scan(qt_app, tmp_path, jpeg_factory, monkeypatch):
    _small_tree(jpeg_factory, "big", big=(200, 200))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    worker = ThreadPoolWorker()
    vm = SessionController(worker)

    vm.start_scan(str(tmp_path / "big"))
    _run(vm, worker)

    assert vm.last_scan.state is ScanState.COMPLETED
    assert vm.last_scan.appended == 3
    images = {image.filename: image for image in vm.snapshot().images}
    assert images["b.jpg"].thumbnail is None
    assert images["a.jpg"].thumbnail is not None


def test_unexpected_file_error_is_reported_per_file(qt_app, tmp_path, jpeg_factory, monkeypatch):
    _small_tree(jpeg_factory, "flaky")
    real = worker_module.process_single_image

    def crash_on_b(path, thumbnail_size):
        if path.name == "b.jpg":
            raise RuntimeError("decoder crashed")
        return real(path, thumbnail_size)

    monkeypatch.setattr(worker_module, "process_single_image", crash_on_b)
    worker = ThreadPoolWorker()
    vm = SessionController(worker)

    vm.start_scan(str(tmp_path / "flaky"))
    _run(vm, worker)

    assert vm.last_scan.state is ScanState.COMPLETED
    assert vm.last_scan.errors == 1
    assert vm.last_scan.scanned == 3
    assert [image.filename for image in vm.snapshot().images] == ["a.jpg", "c.jpg"]
    assert "1 unreadable" in vm.status_message
