# dealscout/events/channel.py
"""
Per-run publish/subscribe channel for ProgressEvents.

- publish() delivers synchronously, in call order, to the subscribers registered
  at that moment. No buffering and no replay.
- emit() stamps `t` so timestamps never go backwards within a run.
- While a run has at least one subscriber, a heartbeat task publishes a
  `heartbeat` event every `heartbeat_interval_s`.
- stream() is the pull-style view: an async iterator over the same events.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any

from dealscout.schemas.models import EVENT_TYPES, ProgressEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]
Unsubscribe = Callable[[], None]

DEFAULT_HEARTBEAT_S = 15.0


class EventChannel:
    def __init__(self, *, heartbeat_interval_s: float = DEFAULT_HEARTBEAT_S, clock: Callable[[], float] = time.time) -> None:
        self.heartbeat_interval_s = heartbeat_interval_s
        self._clock = clock
        self._subs: dict[str, dict[int, Subscriber]] = {}
        self._last_t: dict[str, float] = {}
        self._heartbeats: dict[str, asyncio.Task[None]] = {}
        self._ids = itertools.count(1)

    # ---------- publishing ----------

    def publish(self, run_id: str, event: ProgressEvent) -> None:
        subs = self._subs.get(run_id)
        if not subs:
            return
        for token, callback in list(subs.items()):
            if token not in subs:
                continue
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                logger.exception("Subscriber for run %s failed on %s event", run_id, event.kind)

    def stamp(self, run_id: str) -> float:
        t = max(self._clock(), self._last_t.get(run_id, 0.0))
        self._last_t[run_id] = t
        return t

    def emit(self, run_id: str, kind: str, **fields: Any) -> ProgressEvent:
        """Build a stamped event of `kind` and publish it."""
        cls = EVENT_TYPES[kind]
        event = cls(run_id=run_id, t=self.stamp(run_id), **fields)
        self.publish(run_id, event)  # type: ignore[arg-type]
        return event  # type: ignore[return-value]

    # ---------- subscribing ----------

    def subscribe(self, run_id: str, callback: Subscriber) -> Unsubscribe:
        token = next(self._ids)
        self._subs.setdefault(run_id, {})[token] = callback
        self._ensure_heartbeat(run_id)

        def unsubscribe() -> None:
            subs = self._subs.get(run_id)
            if subs is None or subs.pop(token, None) is None:
                return
            if not subs:
                self._subs.pop(run_id, None)
                self._stop_heartbeat(run_id)

        return unsubscribe

    def subscriber_count(self, run_id: str) -> int:
        return len(self._subs.get(run_id, {}))

    async def stream(self, run_id: str, *, until_terminal: bool = True) -> AsyncIterator[ProgressEvent]:
        """Pull-style subscription; stops after the completion event when `until_terminal`."""
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        unsubscribe = self.subscribe(run_id, queue.put_nowait)
        try:
            while True:
                event = await queue.get()
                yield event
                if until_terminal and event.kind == "completion":
                    return
        finally:
            unsubscribe()

    def forget(self, run_id: str) -> None:
        """Drop per-run bookkeeping once nobody listens any more."""
        if not self._subs.get(run_id):
            self._last_t.pop(run_id, None)

    # ---------- heartbeat ----------

    def _ensure_heartbeat(self, run_id: str) -> None:
        if self.heartbeat_interval_s <= 0:
            return
        running = self._heartbeats.get(run_id)
        if running is not None and not running.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._heartbeats[run_id] = loop.create_task(self._beat(run_id), name=f"heartbeat:{run_id}")

    def _stop_heartbeat(self, run_id: str) -> None:
        task = self._heartbeats.pop(run_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def _beat(self, run_id: str) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval_s)
            if not self._subs.get(run_id):
                return
            self.emit(run_id, "heartbeat")

    async def aclose(self) -> None:
        tasks = list(self._heartbeats.values())
        self._heartbeats.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["EventChannel", "Subscriber", "Unsubscribe", "DEFAULT_HEARTBEAT_S"]
