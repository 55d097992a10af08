from __future__ import annotations

import pytest

from core.models import MoveRecord, OperationLog, UndoResultEvent
from core.services.interfaces import MoveResult, MoveState
from core.services.undo_slot import UndoSlot


def _result(op_id: str, count: int) -> MoveResult:
    records = tuple(
        MoveRecord(f"/photos/{i}.jpg", f"/out/alice/{i}.jpg", f"{i}.jpg") for i in range(count)
    )
    log = OperationLog(op_id, "2024-01-01 00:00:00", "/out", records) if records else None
    return MoveResult(
        state=MoveState.COMPLETED, moved_count=count, total=count, undo_record=log
    )


def test_empty_slot_undo_succeeds_without_dispatch(worker):
    slot = UndoSlot()

    result = slot.execute(worker)

    assert result.restored_count == 0
    assert result.success
    assert worker.undo_calls == 0


def test_record_ignores_batches_that_moved_nothing():
    slot = UndoSlot()
    assert slot.record(_result("x", 0)) is False
    assert not slot.available


def test_newer_move_replaces_record():
    slot = UndoSlot()
    slot.record(_result("first", 2))
    slot.record(_result("second", 1))

    assert slot.peek().operation_id == "second"


def test_execute_and_complete(worker):
    slot = UndoSlot()
    slot.record(_result("op", 2))

    assert slot.execute(worker) is None
    assert worker.undo_calls == 1
    assert slot.running
    assert not slot.available

    result = slot.complete(UndoResultEvent(restored_count=2, success=True))

    assert result.restored_count == 2
    assert result.expected == 2
    assert not slot.available
    assert not slot.running
    assert slot.channel.closed


def test_partial_restore_still_clears_slot(worker):
    slot = UndoSlot()
    slot.record(_result("op", 3))
    slot.execute(worker)

    result = slot.complete(UndoResultEvent(restored_count=1, success=True))

    assert result.restored_count < result.expected
    assert slot.peek() is None
    assert slot.execute(worker).restored_count == 0
    assert worker.undo_calls == 1


def test_dispatch_failure_keeps_record(worker):
    slot = UndoSlot()
    slot.record(_result("op", 2))
    worker.dispatch_error = RuntimeError("worker unavailable")

    with pytest.raises(RuntimeError):
        slot.execute(worker)

    assert not slot.running
    assert slot.available
    assert slot.channel is None
    assert slot.peek().operation_id == "op"
