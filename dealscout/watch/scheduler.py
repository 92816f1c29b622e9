# dealscout/watch/scheduler.py
"""
Recurring triggers for watchlists.

TimerService           schedule_recurring(key, interval_s, callback) -> cancel
AsyncioTimerService    one asyncio task per key on the running loop
WatchQueue             single-consumer FIFO; one cycle at a time, process-wide
WatchlistScheduler     keeps timers in sync with the watchlist definitions

Timers only enqueue the watchlist id; the queue consumer runs the worker.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

from dealscout.schemas.models import Watchlist

from .config import WatchlistRepository
from .snapshots import SnapshotStore

logger = logging.getLogger(__name__)

Cancel = Callable[[], None]
Job = Callable[[str], Awaitable[object]]

_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_NAMED = {"hourly": 3600, "daily": 86400}
_INTERVAL_RE = re.compile(r"^\s*(\d+)\s*([smhd])\s*$", re.I)
_EVERY_MIN_RE = re.compile(r"^\*/(\d+) \* \* \* \*$")
_EVERY_HOUR_RE = re.compile(r"^0 \*/(\d+) \* \* \*$")


def parse_schedule(expr: str) -> float:
    """
    Interval in seconds for a schedule expression.

    Accepts "90s" / "15m" / "1h" / "2d", "hourly" / "daily", and the cron forms
    "0 * * * *", "*/N * * * *", "0 */N * * *", "0 0 * * *".
    """
    text = (expr or "").strip()
    if text.lower() in _NAMED:
        return float(_NAMED[text.lower()])
    m = _INTERVAL_RE.match(text)
    if m:
        seconds = int(m.group(1)) * _UNITS[m.group(2).lower()]
        if seconds <= 0:
            raise ValueError(f"schedule interval must be positive: {expr!r}")
        return float(seconds)

    cron = " ".join(text.split())
    if cron == "0 * * * *":
        return 3600.0
    if cron == "0 0 * * *":
        return 86400.0
    m = _EVERY_MIN_RE.match(cron)
    if m and int(m.group(1)) > 0:
        return float(int(m.group(1)) * 60)
    m = _EVERY_HOUR_RE.match(cron)
    if m and int(m.group(1)) > 0:
        return float(int(m.group(1)) * 3600)
    raise ValueError(f"unsupported schedule expression: {expr!r}")


class TimerService(Protocol):
    def schedule_recurring(
        self, key: str, interval_s: float, callback: Callable[[], None], *, immediate: bool = False
    ) -> Cancel: ...

    def cancel(self, key: str) -> bool: ...


class AsyncioTimerService:
    """Recurring callbacks as asyncio tasks; registering an existing key replaces it."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def keys(self) -> list[str]:
        return sorted(k for k, t in self._tasks.items() if not t.done())

    def schedule_recurring(
        self, key: str, interval_s: float, callback: Callable[[], None], *, immediate: bool = False
    ) -> Cancel:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._tick(key, interval_s, callback, immediate), name=f"timer:{key}")
        self._tasks[key] = task

        def cancel() -> None:
            if self._tasks.get(key) is task:
                self.cancel(key)

        return cancel

    async def _tick(self, key: str, interval_s: float, callback: Callable[[], None], immediate: bool) -> None:
        if immediate:
            self._fire(key, callback)
        while True:
            await asyncio.sleep(interval_s)
            self._fire(key, callback)

    @staticmethod
    def _fire(key: str, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:  # noqa: BLE001
            logger.exception("Timer callback %s failed", key)

    def cancel(self, key: str) -> bool:
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def aclose(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class WatchQueue:
    """FIFO of watchlist ids drained by exactly one consumer task."""

    def __init__(self, job: Job) -> None:
        self._job = job
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._pending: set[str] = set()
        self._consumer: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def put(self, watch_id: str) -> bool:
        """Enqueue unless already waiting; a running cycle does not count as waiting."""
        if watch_id in self._pending:
            logger.debug("Watchlist %s already queued", watch_id)
            return False
        self._pending.add(watch_id)
        self._queue.put_nowait(watch_id)
        return True

    def start(self) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.get_running_loop().create_task(self._consume(), name="watch-queue")

    async def _consume(self) -> None:
        while True:
            watch_id = await self._queue.get()
            self._pending.discard(watch_id)
            try:
                await self._job(watch_id)
            except Exception:  # noqa: BLE001
                logger.exception("Watch job %s failed", watch_id)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    async def stop(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
            self._consumer = None


class WatchlistScheduler:
    def __init__(
        self,
        timers: TimerService,
        queue: WatchQueue,
        snapshots: SnapshotStore,
        *,
        repository: WatchlistRepository | None = None,
        run_immediately: bool = False,
    ) -> None:
        self.timers = timers
        self.queue = queue
        self.snapshots = snapshots
        self.repository = repository
        self.run_immediately = run_immediately
        self._known: dict[str, Watchlist] = {}
        self._active: set[str] = set()

    @property
    def active(self) -> list[str]:
        return sorted(self._active)

    def sync(self, watchlists: Iterable[Watchlist]) -> None:
        """
        Reconcile timers with `watchlists`:
          enabled  → cancel then register (never two timers for one id)
          disabled → cancel, snapshot kept
          removed  → cancel and delete its snapshot
        """
        incoming = {wl.id: wl for wl in watchlists}

        for watch_id in sorted(set(self._known) - set(incoming)):
            self._unregister(watch_id)
            self.snapshots.delete(watch_id)
            logger.info("Watchlist %s removed; timer cancelled and snapshot deleted", watch_id)

        for watch_id, wl in incoming.items():
            if not wl.enabled:
                if watch_id in self._active:
                    logger.info("Watchlist %s disabled", watch_id)
                self._unregister(watch_id)
                continue
            try:
                interval_s = parse_schedule(wl.schedule)
            except ValueError as e:
                logger.warning("Watchlist %s not scheduled: %s", watch_id, e)
                self._unregister(watch_id)
                continue
            self._unregister(watch_id)
            self.timers.schedule_recurring(
                watch_id,
                interval_s,
                lambda wid=watch_id: self.queue.put(wid),
                immediate=self.run_immediately,
            )
            self._active.add(watch_id)
            logger.info("Watchlist %s scheduled every %.0fs", watch_id, interval_s)

        self._known = incoming

    def reload(self) -> None:
        if self.repository is None:
            raise RuntimeError("no watchlist repository configured")
        self.sync(self.repository.load_all())

    def _unregister(self, watch_id: str) -> None:
        self.timers.cancel(watch_id)
        self._active.discard(watch_id)


__all__ = [
    "AsyncioTimerService",
    "TimerService",
    "WatchQueue",
    "WatchlistScheduler",
    "parse_schedule",
]
