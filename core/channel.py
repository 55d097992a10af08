"""Ordered, per-session event channel between a worker and the controller.

The worker side only ever calls `put`; the controller drains the channel from
its own thread. Once the terminal event has been consumed the channel is
closed and anything the worker still pushes is dropped.
"""

from __future__ import annotations

import queue
import threading
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class EventChannel(Generic[T]):
    """FIFO queue of events belonging to exactly one session."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: queue.Queue[T] = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        """True once the controller stopped accepting events."""
        return self._closed.is_set()

    def put(self, event: T) -> bool:
        """Enqueue `event`; returns False if the channel is already closed."""
        if self._closed.is_set():
            logger.warning("Dropping event on closed channel {}: {}", self.name, event)
            return False
        self._queue.put(event)
        return True

    def drain(self, timeout: float | None = None) -> list[T]:
        """Return all pending events in arrival order.

        If `timeout` is given and nothing is pending, wait up to `timeout`
        seconds for the first event.
        """
        events: list[T] = []
        if timeout is not None and not self._closed.is_set():
            try:
                events.append(self._queue.get(timeout=timeout))
            except queue.Empty:
                return events
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        """Refuse further events and discard anything still queued."""
        self._closed.set()
        dropped = self.drain()
        if dropped:
            logger.warning("Discarded {} late event(s) on channel {}", len(dropped), self.name)
