from __future__ import annotations

import argparse
from pathlib import Path
import sys

from loguru import logger

from app.viewmodels.preview_vm import MovePreview
from app.viewmodels.session_vm import SessionController
from core.errors import SessionFatalError, Tag2DirError
from infrastructure.logging import get_move_log_directory, init_logging
from infrastructure.move_service import MoveService
from infrastructure.settings import JsonSettings
from infrastructure.worker import ThreadPoolWorker

BASE_DIR = Path(__file__).parent
POLL_SECONDS = 0.2


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tag2dir",
        description="Sort tagged images into one folder per person.",
    )
    parser.add_argument("source", help="Folder to scan for images")
    parser.add_argument("target", help="Folder receiving one subfolder per person")
    parser.add_argument("--no-subdirs", action="store_true", help="Do not scan subfolders")
    parser.add_argument("--dry-run", action="store_true", help="Only print the move preview")
    parser.add_argument(
        "--settings", default=str(BASE_DIR / "settings.json"), help="Path to settings.json"
    )
    return parser.parse_args(argv)


def _wait_until_idle(vm: SessionController) -> None:
    while vm.busy:
        vm.process_events(timeout=POLL_SECONDS)
    vm.process_events()


def _print_preview(preview: MovePreview) -> None:
    print(
        f"{preview.valid_count} of {preview.selected_count} selected image(s) can be moved"
        + (f" ({preview.unassigned_count} without a person)" if preview.unassigned_count else "")
    )
    for group in preview.groups:
        print(f"  {group.folder_path}  [{group.count}]")
        for item in group.items:
            print(f"    {item.file_name}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = JsonSettings(args.settings)
    init_logging(settings.get("logging.dir"), settings.get("logging.level", "INFO"), console=True)

    service = MoveService(
        log_dir=settings.get("audit.move_log_dir") or get_move_log_directory(),
        cleanup_empty=settings.get_bool("move.cleanup_empty_dirs", True),
    )
    worker = ThreadPoolWorker(
        service=service,
        extensions=settings.extensions(),
        thumbnail_size=settings.get_int("scan.thumbnail_max_size", 300),
    )
    vm = SessionController(worker, strict=settings.get_bool("controller.strict_invariants"))

    include_subdirs = settings.get_bool("scan.include_subdirs", True) and not args.no_subdirs
    try:
        vm.start_scan(args.source, include_subdirs)
        _wait_until_idle(vm)
        print(vm.status_message)
        if vm.last_scan is None or vm.last_scan.error:
            raise SessionFatalError(vm.last_error or "scan did not finish")

        vm.auto_assign()
        vm.select_all()
        preview = vm.preview_move(args.target)
        _print_preview(preview)
        if preview.valid_count == 0:
            print("Nothing to move: no image carries a person tag")
            return 0
        if args.dry_run:
            return 0

        vm.start_move(args.target)
        _wait_until_idle(vm)
        if vm.last_move is not None and vm.last_move.error:
            raise SessionFatalError(vm.last_move.error)
    except Tag2DirError as ex:
        logger.warning("Aborted: {}", ex)
        print(vm.status_message, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        vm.cancel_scan()
        _wait_until_idle(vm)
        print(vm.status_message)
        return 130
    finally:
        worker.wait_for_done()

    print(vm.status_message)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
