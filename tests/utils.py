# tests/utils.py
"""
Single source of truth for test data, factories, fakes and canonical HTML.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dealscout.core.errors import SearchProviderError
from dealscout.core.extract.pages import WaitUntil
from dealscout.core.scoring.engine import score_candidate
from dealscout.schemas.models import (
    MacroSignals,
    ScoredCandidate,
    SearchHit,
    Snapshot,
    SnapshotItem,
    Watchlist,
)

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_QUERY = "dollar general NNN Texas"
# scores 74: relevance 16, tenant 16, lease 15, yield 12, url_quality 15
DEFAULT_SNIPPET = "NNN Dollar General for sale in Texas. Cap rate 7% asking $1.5M."
CREXI = "https://www.crexi.com"


def detail_url(n: int, host: str = CREXI) -> str:
    if "loopnet" in host:
        return f"{host}/Listing/{n}-Main-St/{n}/"
    return f"{host}/properties/{100000 + n}/dollar-general-{n}"


# -----------------------------
# Search / scoring factories
# -----------------------------


def make_hit(
    n: int = 1,
    *,
    title: str | None = None,
    url: str | None = None,
    snippet: str = DEFAULT_SNIPPET,
) -> SearchHit:
    return SearchHit(title=title or f"Dollar General #{n}", url=url or detail_url(n), snippet=snippet)


def make_candidate(n: int = 1, query: str | None = DEFAULT_QUERY, **kw: Any) -> ScoredCandidate:
    return score_candidate(make_hit(n, **kw), query)


# -----------------------------
# Canonical HTML pages
# -----------------------------


FILLER = " ".join(["Well-located single tenant retail building with strong traffic counts."] * 10)


def listing_html(
    *,
    title: str = "Dollar General | 123 Main St",
    h1: str | None = "Dollar General - Dallas, TX",
    address: str | None = "123 Main St, Dallas, TX 75201",
    price: str | None = "Asking Price: $4.2 million",
    noi: str | None = "NOI: $273,000",
    cap: str | None = "Cap Rate: 6.5%",
    extra: str = "",
) -> str:
    parts = [f"<html><head><title>{title}</title></head><body>"]
    if h1:
        parts.append(f"<h1>{h1}</h1>")
    if address:
        parts.append(f"<address>{address}</address>")
    if price:
        parts.append(f'<div class="price">{price}</div>')
    if noi:
        parts.append(f'<div class="noi">{noi}</div>')
    if cap:
        parts.append(f'<div class="cap-rate">{cap}</div>')
    parts.append(f"<p>{FILLER}</p>{extra}</body></html>")
    return "".join(parts)


BLOCKED_HTML = "<html><head><title>Access Denied</title></head><body><p>Reference #18.2f</p></body></html>"

HOME_HTML = (
    "<html><head><title>Crexi | Commercial Real Estate</title></head><body>"
    '<nav><a href="/about">About</a><a href="/properties/tenants/cvs">CVS</a></nav>'
    '<div class="card"><a href="/properties/654321/dollar-general-waco">Dollar General Waco</a></div>'
    "</body></html>"
)

JSONLD_HTML = (
    "<html><head><title>Listing</title>"
    '<script type="application/ld+json">'
    + json.dumps(
        {
            "@context": "https://schema.org",
            "@type": "Product",
            "name": "Tractor Supply NNN",
            "offers": {"@type": "Offer", "price": "3,150,000"},
            "address": {
                "streetAddress": "77 Ranch Rd",
                "addressLocality": "Austin",
                "addressRegion": "TX",
                "postalCode": "78701",
            },
            "additionalProperty": [
                {"@type": "PropertyValue", "name": "NOI", "value": "204,750"},
                {"@type": "PropertyValue", "name": "Cap Rate", "value": "6.5%"},
            ],
        }
    )
    + "</script></head><body><p>"
    + FILLER
    + "</p></body></html>"
)


# -----------------------------
# Watch factories
# -----------------------------


def make_watchlist(watch_id: str = "tx-nnn", **overrides: Any) -> Watchlist:
    data: dict[str, Any] = {"id": watch_id, "label": "TX NNN", "query": DEFAULT_QUERY, "schedule": "hourly"}
    data.update(overrides)
    return Watchlist(**data)


def write_watchlists(path: Path, watchlists: list[Watchlist]) -> Path:
    path.write_text(json.dumps([w.model_dump(mode="json") for w in watchlists]), encoding="utf-8")
    return path


def make_item(url: str = "https://x.test/1", **overrides: Any) -> SnapshotItem:
    data: dict[str, Any] = {"url": url, "score": 80.0, "risk": 50.0, "title": "Item", "price": 1_000_000.0, "cap_rate": 0.07}
    data.update(overrides)
    return SnapshotItem(**data)


def make_snapshot(watch_id: str = "tx-nnn", items: list[SnapshotItem] | None = None) -> Snapshot:
    return Snapshot(watch_id=watch_id, items=items or [])


# -----------------------------
# Fakes
# -----------------------------


class FakeSearchProvider:
    """
    Scripted provider. `script` is consumed one entry per call (a hit list or an
    exception to raise); once exhausted every call returns `default`.
    """

    def __init__(
        self,
        script: list[list[SearchHit] | Exception] | None = None,
        *,
        default: list[SearchHit] | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self.script = list(script or [])
        self.default = list(default or [])
        self.delay_s = delay_s
        self.queries: list[str] = []

    async def search(self, query: str, *, num: int = 10) -> list[SearchHit]:
        self.queries.append(query)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        entry: list[SearchHit] | Exception = self.script.pop(0) if self.script else self.default
        if isinstance(entry, Exception):
            raise entry
        return list(entry)[:num]


def failing_provider() -> FakeSearchProvider:
    return FakeSearchProvider(default=[], script=[SearchProviderError("boom")] * 3)


@dataclass
class FakePage:
    html: str
    title: str | None = None
    redirect_to: str | None = None
    goto_error: Exception | None = None
    goto_delay_s: float = 0.0

    def page_title(self) -> str:
        if self.title is not None:
            return self.title
        start, end = self.html.find("<title>"), self.html.find("</title>")
        return self.html[start + 7 : end] if start != -1 and end != -1 else ""


@dataclass
class FakePageSession:
    pages: dict[str, FakePage]
    screenshot_error: Exception | None = None
    current: str = "about:blank"
    closed: bool = False
    visits: list[tuple[str, str]] = field(default_factory=list)

    @property
    def url(self) -> str:
        return self.current

    def _page(self) -> FakePage:
        return self.pages.get(self.current) or FakePage(html="<html><head><title></title></head><body></body></html>")

    async def goto(self, url: str, *, wait_until: WaitUntil, timeout_s: float) -> None:
        self.visits.append((url, wait_until))
        page = self.pages.get(url)
        if page is not None and page.goto_delay_s:
            await asyncio.sleep(page.goto_delay_s)
        if page is not None and page.goto_error is not None:
            raise page.goto_error
        self.current = page.redirect_to if page is not None and page.redirect_to else url

    async def title(self) -> str:
        return self._page().page_title()

    async def content(self) -> str:
        return self._page().html

    async def screenshot(self) -> bytes:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return b"\x89PNG fake"

    async def close(self) -> None:
        self.closed = True


class FakePageRenderer:
    """HTML-per-url renderer; every session sees the same page table."""

    def __init__(self, pages: dict[str, FakePage | str] | None = None, *, screenshot_error: Exception | None = None) -> None:
        self.pages = {u: (p if isinstance(p, FakePage) else FakePage(html=p)) for u, p in (pages or {}).items()}
        self.screenshot_error = screenshot_error
        self.sessions: list[FakePageSession] = []
        self.closed = False

    async def new_session(self) -> FakePageSession:
        session = FakePageSession(self.pages, screenshot_error=self.screenshot_error)
        self.sessions.append(session)
        return session

    async def aclose(self) -> None:
        self.closed = True


class FakeMacroClient:
    def __init__(self, signals: MacroSignals | None = None) -> None:
        self._signals = signals or MacroSignals()
        self.queries: list[str] = []

    async def signals(self, query: str) -> MacroSignals:
        self.queries.append(query)
        return self._signals


class EventRecorder:
    """Channel subscriber that keeps every event it sees."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    def of(self, kind: str) -> list[Any]:
        return [e for e in self.events if e.kind == kind]
