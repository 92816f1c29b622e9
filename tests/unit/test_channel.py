# tests/unit/test_channel.py
"""
Event channel: delivery order, monotonic timestamps, subscriber isolation,
heartbeat lifecycle, pull-style stream.
"""

import asyncio

import pytest

from dealscout.events.channel import EventChannel
from tests.utils import EventRecorder


class BackwardsClock:
    def __init__(self, *values: float) -> None:
        self._values = list(values)

    def __call__(self) -> float:
        return self._values.pop(0)


def test_publish_delivers_in_order_with_monotonic_t():
    channel = EventChannel(heartbeat_interval_s=0, clock=BackwardsClock(10.0, 9.0, 12.0))
    rec = EventRecorder()
    channel.subscribe("r1", rec)

    channel.emit("r1", "status", label="Searching")
    channel.emit("r1", "thinking", text="stage 1")
    channel.emit("r1", "completion", ok=True, deal_count=0)

    assert rec.kinds() == ["status", "thinking", "completion"]
    assert [e.t for e in rec.events] == [10.0, 10.0, 12.0]


def test_no_subscribers_means_no_delivery_and_no_replay():
    channel = EventChannel(heartbeat_interval_s=0)
    channel.emit("r1", "status", label="early")
    rec = EventRecorder()
    channel.subscribe("r1", rec)
    assert rec.events == []


def test_failing_subscriber_does_not_block_others():
    channel = EventChannel(heartbeat_interval_s=0)

    def boom(event):
        raise RuntimeError("subscriber bug")

    rec = EventRecorder()
    channel.subscribe("r1", boom)
    channel.subscribe("r1", rec)
    channel.emit("r1", "thinking", text="x")
    assert rec.kinds() == ["thinking"]


def test_unsubscribe_is_idempotent_and_scoped_per_run():
    channel = EventChannel(heartbeat_interval_s=0)
    a, b = EventRecorder(), EventRecorder()
    off = channel.subscribe("r1", a)
    channel.subscribe("r2", b)

    off()
    off()
    channel.emit("r1", "thinking", text="r1 only")
    channel.emit("r2", "thinking", text="r2 only")

    assert a.events == []
    assert [e.text for e in b.events] == ["r2 only"]
    assert channel.subscriber_count("r1") == 0


@pytest.mark.asyncio
@pytest.mark.timeout(5)
async def test_heartbeat_runs_only_while_subscribed():
    channel = EventChannel(heartbeat_interval_s=0.02)
    rec = EventRecorder()
    off = channel.subscribe("r1", rec)
    await asyncio.sleep(0.09)
    off()
    beats = len(rec.of("heartbeat"))
    assert beats >= 2

    await asyncio.sleep(0.06)
    assert len(rec.of("heartbeat")) == beats
    await channel.aclose()


@pytest.mark.asyncio
@pytest.mark.timeout(5)
async def test_stream_stops_after_completion():
    channel = EventChannel(heartbeat_interval_s=0)
    seen = []

    async def consume():
        async for event in channel.stream("r1"):
            seen.append(event.kind)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    channel.emit("r1", "status", label="go")
    channel.emit("r1", "completion", ok=False, message="cancelled: user")
    channel.emit("r1", "thinking", text="after the end")
    await asyncio.wait_for(task, 1)

    assert seen == ["status", "completion"]
    assert channel.subscriber_count("r1") == 0
