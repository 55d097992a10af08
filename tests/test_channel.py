from __future__ import annotations

import threading

from core.channel import EventChannel


def test_drain_returns_events_in_order():
    channel: EventChannel[int] = EventChannel("test")
    for i in range(5):
        assert channel.put(i)

    assert channel.drain() == [0, 1, 2, 3, 4]
    assert channel.drain() == []


def test_drain_waits_for_first_event():
    channel: EventChannel[str] = EventChannel("test")
    timer = threading.Timer(0.05, channel.put, args=("late",))
    timer.start()
    try:
        assert channel.drain(timeout=2.0) == ["late"]
    finally:
        timer.join()


def test_drain_timeout_without_events():
    channel: EventChannel[str] = EventChannel("test")
    assert channel.drain(timeout=0.01) == []


def test_closed_channel_drops_events():
    channel: EventChannel[int] = EventChannel("test")
    channel.put(1)
    channel.close()

    assert channel.closed
    assert channel.put(2) is False
    assert channel.drain() == []
