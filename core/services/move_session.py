"""Planning and state machine for a single move batch.

A batch is built from images that are both selected and ready; everything
else in the selection is reported as unassigned rather than as an error.
Once dispatched, a batch runs until the worker's final event: there is no
cancellation, and a partially moved batch is a normal terminal outcome.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
import uuid

from loguru import logger

from core.catalog import Catalog
from core.channel import EventChannel
from core.errors import EmptyBatchError, MissingTargetError, SessionBusyError
from core.models import ImageStatus, MoveProgressEvent, MoveRequest, OperationLog
from core.services.interfaces import IWorker, MovePlan, MoveResult, MoveState

ProgressObserver = Callable[[MoveProgressEvent], None]


def plan_move(catalog: Catalog, selection: Iterable[str]) -> MovePlan:
    """Compute the batch for `selection`, skipping images without a person."""
    selected = set(selection)
    batch: list[MoveRequest] = []
    unassigned = 0
    selected_count = 0
    for image in catalog:
        if image.id not in selected:
            continue
        selected_count += 1
        if not image.is_ready:
            unassigned += 1
            continue
        batch.append(
            MoveRequest(
                image_id=image.id,
                source_path=image.path,
                filename=image.filename,
                person=image.selected_person or "",
            )
        )
    return MovePlan(
        batch=tuple(batch), selected_count=selected_count, unassigned_count=unassigned
    )


class MoveSession:
    """One move batch: IDLE -> VALIDATING -> RUNNING -> COMPLETED | FAILED."""

    def __init__(
        self,
        worker: IWorker,
        catalog: Catalog,
        on_progress: ProgressObserver | None = None,
    ) -> None:
        self._worker = worker
        self._catalog = catalog
        self._on_progress = on_progress
        self.state = MoveState.IDLE
        self.channel: EventChannel[MoveProgressEvent] = EventChannel("move")
        self.target_dir = ""
        self.plan: MovePlan | None = None
        self.progress: MoveProgressEvent | None = None
        self.result: MoveResult | None = None

    @property
    def running(self) -> bool:
        return self.state is MoveState.RUNNING

    def start(self, target_dir: str, selection: Iterable[str]) -> MovePlan:
        """Validate the selection, mark the batch MOVING and dispatch it."""
        if self.state is not MoveState.IDLE:
            raise SessionBusyError(f"Move session already {self.state.value}")
        if not target_dir or not target_dir.strip():
            raise MissingTargetError("Target directory is required")

        self.state = MoveState.VALIDATING
        plan = plan_move(self._catalog, selection)
        if not plan.batch:
            self.state = MoveState.IDLE
            raise EmptyBatchError(plan.unassigned_count)

        self.plan = plan
        self.target_dir = target_dir
        self._catalog.mark_status([req.image_id for req in plan.batch], ImageStatus.MOVING)
        self.progress = MoveProgressEvent(moved_count=0, total=len(plan.batch))
        self.state = MoveState.RUNNING
        logger.info(
            "Move started: {} file(s) to {} ({} unassigned skipped)",
            len(plan.batch),
            target_dir,
            plan.unassigned_count,
        )
        try:
            self._worker.begin_move(plan.batch, target_dir, self.channel)
        except Exception:
            logger.error("Move could not be dispatched, batch returned to Ready")
            self._catalog.mark_status([req.image_id for req in plan.batch], ImageStatus.READY)
            self.state = MoveState.IDLE
            self.plan = None
            self.progress = None
            raise
        return plan

    def handle(self, event: MoveProgressEvent) -> MoveResult | None:
        """Forward progress; on the final event settle every batch member."""
        if self.state is not MoveState.RUNNING or self.plan is None:
            logger.warning("Move event ignored in state {}", self.state.value)
            return None

        self.progress = event
        if event.error and not event.done:
            logger.warning("Move item failed: {} ({})", event.current_file, event.error)
        if self._on_progress is not None:
            self._on_progress(event)
        if not event.done:
            return None
        return self._finish(event, self.plan)

    def _finish(self, event: MoveProgressEvent, plan: MovePlan) -> MoveResult:
        by_source = {req.source_path: req.image_id for req in plan.batch}
        pending = {req.image_id for req in plan.batch}

        moved_ids = [
            by_source[r.original_path] for r in event.records if r.original_path in by_source
        ]
        self._catalog.mark_status(moved_ids, ImageStatus.MOVED)
        pending.difference_update(moved_ids)

        failed: list[tuple[str, str]] = []
        for source_path, reason in event.failures:
            image_id = by_source.get(source_path)
            if image_id is None:
                continue
            self._catalog.mark_status([image_id], ImageStatus.ERRORED, reason)
            pending.discard(image_id)
            failed.append((source_path, reason))

        # Anything the worker neither moved nor reported must not stay MOVING
        leftover_reason = event.error or "not moved"
        for req in plan.batch:
            if req.image_id in pending:
                self._catalog.mark_status([req.image_id], ImageStatus.ERRORED, leftover_reason)
                failed.append((req.source_path, leftover_reason))

        self.state = MoveState.FAILED if event.error else MoveState.COMPLETED
        self.channel.close()

        undo_record = None
        if event.records:
            undo_record = OperationLog(
                operation_id=uuid.uuid4().hex,
                timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
                target_dir=self.target_dir,
                records=tuple(event.records),
            )
        self.result = MoveResult(
            state=self.state,
            moved_count=len(moved_ids),
            total=len(plan.batch),
            failed=failed,
            unassigned_count=plan.unassigned_count,
            undo_record=undo_record,
            error=event.error,
        )
        logger.info(
            "Move {}: {} of {} moved, {} failed",
            self.state.value,
            self.result.moved_count,
            self.result.total,
            len(failed),
        )
        return self.result
