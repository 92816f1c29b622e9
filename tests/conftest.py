# tests/conftest.py
from __future__ import annotations

import os
import random
from pathlib import Path

import pytest

from dealscout.core.extract.engine import ExtractionEngine
from dealscout.core.search.cascade import SearchCascade
from dealscout.events.channel import EventChannel
from dealscout.runs.controller import RunController
from dealscout.storage.kv import FileStore, InMemoryStore
from dealscout.watch.config import WatchlistRepository
from dealscout.watch.notifier import Notifier
from dealscout.watch.snapshots import SnapshotStore
from dealscout.watch.worker import WatchlistWorker
from tests.utils import (
    FakeMacroClient,
    FakePageRenderer,
    FakeSearchProvider,
    listing_html,
    make_hit,
)

_ENV_KEYS = (
    "SERPER_API_KEY",
    "FRED_API_KEY",
    "BLS_API_KEY",
    "BROWSER_HEADED",
    "BRIGHTDATA_HOST",
    "BRIGHTDATA_USERNAME",
    "BRIGHTDATA_PASSWORD",
)


# -------- Global deterministic seed --------
@pytest.fixture(autouse=True, scope="session")
def _seed_session():
    random.seed(1337)
    os.environ.setdefault("PYTHONHASHSEED", "0")
    yield


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep developer credentials and DEALSCOUT_* knobs out of tests."""
    for key in list(os.environ):
        if key.startswith("DEALSCOUT_") or key in _ENV_KEYS:
            monkeypatch.delenv(key, raising=False)
    yield


# -------- Stores --------
@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def file_store(tmp_path: Path):
    return FileStore(tmp_path / "data")


# -------- Discovery fixtures --------
@pytest.fixture
def three_hits():
    return [make_hit(1), make_hit(2), make_hit(3)]


@pytest.fixture
def good_pages(three_hits):
    """Page table where hits 1 and 3 render listings and hit 2 is blocked."""
    from tests.utils import BLOCKED_HTML

    return {
        three_hits[0].url: listing_html(),
        three_hits[1].url: BLOCKED_HTML,
        three_hits[2].url: listing_html(h1="Dollar General - Waco, TX", address="9 Elm Rd, Waco, TX 76701"),
    }


@pytest.fixture
def controller_factory(memory_store):
    """Build a RunController over fakes; heartbeats off unless asked for."""

    def _factory(
        *,
        provider: FakeSearchProvider | None = None,
        renderer: FakePageRenderer | None = None,
        heartbeat_s: float = 0.0,
        **kw,
    ) -> RunController:
        provider = provider or FakeSearchProvider()
        renderer = renderer or FakePageRenderer()
        extractor = ExtractionEngine(renderer, load_timeout_s=2, relaxed_timeout_s=1, attempt_timeout_s=5, screenshot_timeout_s=1)
        ids = iter(f"run{i}" for i in range(1, 1000))
        return RunController(
            SearchCascade(provider),
            extractor,
            EventChannel(heartbeat_interval_s=heartbeat_s),
            results=memory_store,
            id_factory=lambda: next(ids),
            **kw,
        )

    return _factory


# -------- Watch fixtures --------
@pytest.fixture
def watch_factory(tmp_path: Path, memory_store):
    """Build (worker, snapshots, notifier, alerts) over a watchlist file in tmp_path."""

    def _factory(provider: FakeSearchProvider, *, macro: FakeMacroClient | None = None, path: Path | None = None):
        repo = WatchlistRepository(path or tmp_path / "watchlists.json")
        snapshots = SnapshotStore(memory_store)
        notifier = Notifier()
        alerts: list = []
        notifier.subscribe(alerts.append)
        worker = WatchlistWorker(repo, SearchCascade(provider), snapshots, notifier, macro=macro or FakeMacroClient())
        return worker, snapshots, notifier, alerts

    return _factory
