"""Move execution, undo and audit logging.

Moves each batch entry into `target_dir/<person>/`, never overwriting an
existing file, and writes an audit CSV per batch. Cross-volume moves copy the
file and send the source to the recycle bin instead of unlinking it.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
import csv
from datetime import datetime
import os
from pathlib import Path
import shutil
import uuid

from loguru import logger
from send2trash import send2trash

from core.models import MoveRecord, MoveRequest, OperationLog

# (moved_count, total, current_file, error)
ProgressCallback = Callable[[int, int, str, str | None], None]

MOVE_LOG_HEADERS = ["OperationId", "Person", "OriginalPath", "NewPath", "Success", "Reason"]


def resolve_filename_conflict(directory: Path, filename: str) -> Path:
    """Return `directory/filename`, or `stem_N.ext` with the first free N."""
    dest = directory / filename
    if not dest.exists():
        return dest
    stem = Path(filename).stem
    suffix = Path(filename).suffix
    counter = 1
    while True:
        candidate = directory / f"{stem}_{counter}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


def _relocate(source: Path, dest: Path) -> None:
    """Rename `source` to `dest`, falling back to copy + recycle across volumes."""
    try:
        os.rename(source, dest)
        return
    except OSError as ex:
        logger.debug("rename {} -> {} failed ({}), copying instead", source, dest, ex)
    shutil.copy2(source, dest)
    try:
        send2trash(str(source))
    except OSError:
        # Leave the source in place rather than keeping two copies
        dest.unlink(missing_ok=True)
        raise


def cleanup_empty_dirs(target_dir: str | Path) -> int:
    """Remove empty direct subfolders of `target_dir`; returns how many."""
    removed = 0
    target = Path(target_dir)
    if not target.is_dir():
        return 0
    for child in target.iterdir():
        if child.is_dir() and not any(child.iterdir()):
            try:
                child.rmdir()
                removed += 1
            except OSError as ex:
                logger.debug("Could not remove {}: {}", child, ex)
    return removed


class MoveService:
    """Coordinates move/undo file operations and audit logging."""

    def __init__(self, log_dir: str | None = None, cleanup_empty: bool = True) -> None:
        self._log_dir = log_dir
        self._cleanup_empty = cleanup_empty

    def move_images(
        self,
        batch: Sequence[MoveRequest],
        target_dir: str,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[OperationLog, list[tuple[str, str]]]:
        """Move every entry and report per-path results.

        Returns the operation log of files actually moved and a list of
        (source path, reason) failures. Raises OSError only if the target
        directory itself cannot be created.
        """
        target = Path(target_dir)
        target.mkdir(parents=True, exist_ok=True)

        records: list[MoveRecord] = []
        failed: list[tuple[str, str]] = []
        total = len(batch)
        for req in batch:
            source = Path(req.source_path)
            error: str | None = None
            try:
                if not source.is_file():
                    raise FileNotFoundError("Source file does not exist")
                person_dir = target / req.person
                person_dir.mkdir(parents=True, exist_ok=True)
                dest = resolve_filename_conflict(person_dir, source.name)
                if dest.name != source.name:
                    logger.info(
                        "Name taken in {}, renaming {} to {}", person_dir, source.name, dest.name
                    )
                _relocate(source, dest)
                records.append(
                    MoveRecord(
                        original_path=req.source_path, new_path=str(dest), filename=source.name
                    )
                )
            except OSError as ex:
                error = str(ex)
                logger.error("Move failed for {}: {}", req.source_path, ex)
                failed.append((req.source_path, error))
            if on_progress is not None:
                on_progress(len(records), total, req.filename, error)

        log = OperationLog(
            operation_id=uuid.uuid4().hex,
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            target_dir=str(target),
            records=tuple(records),
        )
        self.write_move_log(log, failed)
        return log, failed

    def undo_move(self, log: OperationLog) -> list[str]:
        """Move files back to their original paths; returns the restored paths.

        Files missing from their destination, or whose original path is
        occupied again, are skipped; restoration never overwrites.
        """
        restored: list[str] = []
        for record in log.records:
            new_path = Path(record.new_path)
            original = Path(record.original_path)
            if not new_path.exists():
                logger.warning("File to restore no longer exists: {}", new_path)
                continue
            if original.exists():
                logger.warning("Original path occupied, not restoring: {}", original)
                continue
            try:
                original.parent.mkdir(parents=True, exist_ok=True)
                _relocate(new_path, original)
                restored.append(record.original_path)
            except OSError as ex:
                logger.error("Restore failed {} -> {}: {}", new_path, original, ex)

        if self._cleanup_empty:
            cleanup_empty_dirs(log.target_dir)
        logger.info(
            "Undo of {}: {} of {} restored", log.operation_id, len(restored), len(log.records)
        )
        return restored

    def write_move_log(
        self, log: OperationLog, failed: Sequence[tuple[str, str]] = ()
    ) -> str | None:
        """Write the audit CSV for one batch; returns its path."""
        if self._log_dir is None:
            return None
        try:
            base_dir = Path(os.path.expandvars(self._log_dir))
            base_dir.mkdir(parents=True, exist_ok=True)
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_path = base_dir / f"move_{ts}_{log.operation_id[:8]}.csv"
            with log_path.open("w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(MOVE_LOG_HEADERS)
                for r in log.records:
                    person = Path(r.new_path).parent.name
                    writer.writerow([log.operation_id, person, r.original_path, r.new_path, 1, ""])
                for path, reason in failed:
                    writer.writerow([log.operation_id, "", path, "", 0, reason])
            logger.info(
                "Move log written: {} ({} moved, {} failed)",
                log_path,
                len(log.records),
                len(failed),
            )
            return str(log_path)
        except (OSError, ValueError) as ex:
            logger.error("Write move log failed: {}", ex)
            return None
