# dealscout/watch/worker.py
"""
One monitoring cycle for one watchlist:

    load definition → domain-restricted cascade → macro signals → risk blend
    → threshold filter → load prior snapshot → diff → save → notify

The snapshot is saved every completed cycle, alert or not, so the next diff is
always against the most recent state. A search that returns no hits at all
(every stage failed or came back empty) skips the cycle and leaves the prior
snapshot in place. Nothing escapes `run_cycle`: failures are logged
and the cycle returns None.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from dealscout.core.errors import SnapshotUnreadable, WatchlistConfigMissing
from dealscout.core.search.cascade import CascadeRequest, SearchCascade
from dealscout.market.macro import MacroProvider
from dealscout.market.risk import blend_risk
from dealscout.schemas.models import (
    AlertNotification,
    DiffResult,
    RiskResult,
    ScoredCandidate,
    Snapshot,
    SnapshotItem,
    Watchlist,
    utcnow,
)

from .config import WatchlistRepository
from .notifier import Notifier
from .snapshots import SnapshotStore, diff_snapshots

logger = logging.getLogger(__name__)

ALERT_SAMPLE = 5


def passing_items(candidates: list[ScoredCandidate], risk: RiskResult, wl: Watchlist) -> list[SnapshotItem]:
    """Candidates with score >= min_score, all dropped when the shared risk exceeds risk_max."""
    if risk.score > wl.risk_max:
        return []
    return [
        SnapshotItem(
            url=c.url,
            score=c.score,
            risk=risk.score,
            title=c.title,
            price=c.signals.price,
            cap_rate=c.signals.cap_rate,
        )
        for c in candidates
        if c.score >= wl.min_score
    ]


class WatchlistWorker:
    def __init__(
        self,
        repository: WatchlistRepository,
        cascade: SearchCascade,
        snapshots: SnapshotStore,
        notifier: Notifier,
        *,
        macro: MacroProvider | None = None,
        max_results: int = 10,
        search_timeout_s: float = 15.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.cascade = cascade
        self.snapshots = snapshots
        self.notifier = notifier
        self.macro = macro
        self.max_results = max_results
        self.search_timeout_s = search_timeout_s
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, watch_id: str) -> asyncio.Lock:
        lock = self._locks.get(watch_id)
        if lock is None:
            lock = self._locks[watch_id] = asyncio.Lock()
        return lock

    async def run_cycle(self, watch_id: str) -> DiffResult | None:
        """Run one cycle; returns the diff, or None when skipped or failed."""
        lock = self._lock(watch_id)
        if lock.locked():
            logger.info("Watchlist %s cycle already in flight; skipping", watch_id)
            return None
        async with lock:
            try:
                return await self._cycle(watch_id)
            except WatchlistConfigMissing as e:
                logger.warning("Watch cycle skipped: %s", e)
            except Exception:  # noqa: BLE001
                logger.exception("Watch cycle for %s failed", watch_id)
            return None

    async def _cycle(self, watch_id: str) -> DiffResult | None:
        wl = self.repository.get(watch_id)
        req = CascadeRequest(
            query=wl.query,
            marketplace=wl.domains[0] if wl.domains else "crexi.com",
            domains=wl.domains,
            max_results=self.max_results,
            timeout_s=self.search_timeout_s,
            min_score=wl.min_score,
        )
        result = await self.cascade.run(req)
        if result.raw_hits == 0:
            errors = [s.error for s in result.stages if s.error]
            logger.warning(
                "Watchlist %s: search returned nothing (%s); keeping the prior snapshot",
                watch_id,
                ", ".join(errors) or "no hits",
            )
            return None

        signals = await self.macro.signals(wl.query) if self.macro is not None else None
        risk = blend_risk(signals)
        items = passing_items(result.candidates, risk, wl)
        logger.info(
            "Watchlist %s: %d candidates, risk %.1f, %d passing thresholds",
            watch_id,
            len(result.candidates),
            risk.score,
            len(items),
        )

        try:
            prior = self.snapshots.load(watch_id)
        except SnapshotUnreadable as e:
            logger.warning("Treating %s as first run: %s", watch_id, e)
            prior = None

        diff = diff_snapshots(prior, items)
        now = self._clock()
        self.snapshots.save(Snapshot(watch_id=watch_id, items=items, ts=now))
        logger.info("Watchlist %s diff: %s", watch_id, diff.summary())

        if diff.alert_count > 0:
            alert = AlertNotification(
                watch_id=watch_id,
                watch_label=wl.label or wl.id,
                new_count=len(diff.new_items),
                changed_count=len(diff.changed_items),
                items=(diff.new_items + diff.changed_items)[:ALERT_SAMPLE],
                timestamp=now,
            )
            await self.notifier.notify(alert)
        return diff


__all__ = ["WatchlistWorker", "passing_items", "ALERT_SAMPLE"]
