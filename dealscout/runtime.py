# dealscout/runtime.py
"""
Wiring: Settings → concrete components.

Every component takes its collaborators through the constructor; this is the one
place that decides which concrete implementations production uses.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dealscout.config.settings import Settings
from dealscout.core.extract.engine import ExtractionEngine
from dealscout.core.extract.pages import PageRenderer
from dealscout.core.extract.render import DEFAULT_USER_AGENT, PlaywrightRenderer
from dealscout.core.search.cascade import SearchCascade
from dealscout.core.search.provider import SearchProvider, SerperSearchProvider
from dealscout.events.channel import EventChannel
from dealscout.market.macro import MacroDataClient, MacroProvider
from dealscout.runs.controller import RunController
from dealscout.storage.kv import FileStore
from dealscout.watch.config import WatchlistRepository
from dealscout.watch.notifier import Notifier
from dealscout.watch.scheduler import AsyncioTimerService, WatchlistScheduler, WatchQueue
from dealscout.watch.snapshots import SnapshotStore
from dealscout.watch.worker import WatchlistWorker


def build_search_provider(settings: Settings) -> SerperSearchProvider:
    s = settings.search
    return SerperSearchProvider(s.serper_api_key, endpoint=s.endpoint, timeout_s=s.timeout_s)


def build_renderer(settings: Settings) -> PlaywrightRenderer:
    e = settings.extraction
    return PlaywrightRenderer(
        headless=e.headless,
        user_agent=e.user_agent or DEFAULT_USER_AGENT,
        proxy_server=e.proxy_server,
        proxy_username=e.proxy_username,
        proxy_password=e.proxy_password,
    )


def build_extractor(settings: Settings, renderer: PageRenderer) -> ExtractionEngine:
    e = settings.extraction
    return ExtractionEngine(
        renderer,
        load_timeout_s=e.load_timeout_s,
        relaxed_timeout_s=e.relaxed_timeout_s,
        attempt_timeout_s=e.attempt_timeout_s,
        screenshot_timeout_s=e.screenshot_timeout_s,
        min_body_text=e.min_body_text,
        capture_screenshot=e.capture_screenshot,
    )


def build_controller(
    settings: Settings,
    *,
    provider: SearchProvider | None = None,
    renderer: PageRenderer | None = None,
    channel: EventChannel | None = None,
) -> RunController:
    s, r = settings.search, settings.runs
    return RunController(
        SearchCascade(provider or build_search_provider(settings)),
        build_extractor(settings, renderer or build_renderer(settings)),
        channel or EventChannel(heartbeat_interval_s=r.heartbeat_s),
        results=FileStore(settings.data_path),
        marketplace=s.marketplace,
        max_candidates=r.max_candidates,
        max_results=s.max_results,
        search_timeout_s=s.timeout_s,
        min_score=s.min_score,
        min_qualified=s.min_qualified,
        score_only=r.score_only,
        cancel_on_disconnect=r.cancel_on_disconnect,
    )


@dataclass
class WatchService:
    """Everything the watch loop needs, built together so they share one store."""

    repository: WatchlistRepository
    snapshots: SnapshotStore
    notifier: Notifier
    worker: WatchlistWorker
    timers: AsyncioTimerService
    queue: WatchQueue
    scheduler: WatchlistScheduler

    async def start(self) -> None:
        self.queue.start()
        self.scheduler.reload()

    async def aclose(self) -> None:
        await self.timers.aclose()
        await self.queue.stop()


def build_watch_service(
    settings: Settings,
    *,
    watchlists_path: str | Path | None = None,
    provider: SearchProvider | None = None,
    macro: MacroProvider | None = None,
    notifier: Notifier | None = None,
) -> WatchService:
    repository = WatchlistRepository(Path(watchlists_path or settings.watch.watchlists_path))
    snapshots = SnapshotStore(FileStore(settings.data_path))
    notifier = notifier or Notifier(settings.notify.webhook_url, timeout_s=settings.notify.timeout_s)
    m = settings.macro
    worker = WatchlistWorker(
        repository,
        SearchCascade(provider or build_search_provider(settings)),
        snapshots,
        notifier,
        macro=macro or MacroDataClient(fred_api_key=m.fred_api_key, bls_api_key=m.bls_api_key, timeout_s=m.timeout_s),
        max_results=settings.search.max_results,
        search_timeout_s=settings.search.timeout_s,
    )
    timers = AsyncioTimerService()
    queue = WatchQueue(worker.run_cycle)
    scheduler = WatchlistScheduler(
        timers,
        queue,
        snapshots,
        repository=repository,
        run_immediately=settings.watch.run_immediately,
    )
    return WatchService(repository, snapshots, notifier, worker, timers, queue, scheduler)


__all__ = [
    "WatchService",
    "build_controller",
    "build_extractor",
    "build_renderer",
    "build_search_provider",
    "build_watch_service",
]
