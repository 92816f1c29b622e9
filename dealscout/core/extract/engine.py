# dealscout/core/extract/engine.py
"""
Extraction engine: one remote listing page → ExtractedListing.

Attempt state machine
---------------------
1. load        goto(domcontentloaded); on failure retry once with "commit"
2. bounce      landed on a home/category/search page → follow one detail link
3. block       empty/WAF title, lingering home page, or a bare shell → blocked
4. fields      selectors → meta → JSON-LD → body regex (see fields.py)
5. drill #2    no listing facts and no drill yet → follow one detail link, re-extract
6. screenshot  always attempted on the final page state, including after a
               deadline or render failure; failure tolerated

Failures never escape `extract`: load failures, parser errors and the overall
attempt deadline come back as degraded ExtractedListing values carrying an
`error` code.
"""

from __future__ import annotations

import base64
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

from dealscout.core.errors import (
    BLOCK_PATTERN,
    ExtractionBlocked,
    ExtractionEmpty,
    ExtractionError,
    ExtractionTimeout,
    extraction_error_guard,
    with_deadline,
)
from dealscout.core.search.urls import classify_url, hostname
from dealscout.schemas.models import ExtractedListing

from .fields import ListingFields, extract_fields, find_detail_link, has_key_elements, is_bare_shell, make_soup
from .pages import PageRenderer, PageSession, WaitUntil

logger = logging.getLogger(__name__)

_BOUNCE_KINDS = frozenset({"home", "category", "search"})
_HOME_TITLE = re.compile(r"^\s*(?:www\.)?[a-z0-9-]+\.(?:com|net|io)\s*$", re.I)


@dataclass
class _AttemptState:
    url: str
    session: PageSession | None = None
    final_url: str | None = None
    screenshot_b64: str | None = None


def outcome_error(listing: ExtractedListing) -> ExtractionError | None:
    """Typed reason an extraction is not usable, or None when it is."""
    if listing.error == "timeout":
        return ExtractionTimeout(f"timed out loading {listing.final_url}")
    if listing.blocked:
        return ExtractionBlocked(f"blocked at {listing.final_url}")
    if listing.error:
        return ExtractionError(f"{listing.error} at {listing.final_url}")
    if not listing.has_fields():
        return ExtractionEmpty(f"no listing fields at {listing.final_url}")
    return None


class ExtractionEngine:
    def __init__(
        self,
        renderer: PageRenderer,
        *,
        load_timeout_s: float = 20.0,
        relaxed_timeout_s: float = 12.0,
        attempt_timeout_s: float = 90.0,
        screenshot_timeout_s: float = 10.0,
        min_body_text: int = 400,
        capture_screenshot: bool = True,
    ) -> None:
        self.renderer = renderer
        self.load_timeout_s = load_timeout_s
        self.relaxed_timeout_s = relaxed_timeout_s
        self.attempt_timeout_s = attempt_timeout_s
        self.screenshot_timeout_s = screenshot_timeout_s
        self.min_body_text = min_body_text
        self.capture_screenshot = capture_screenshot

    async def extract(self, url: str, *, selectors: Mapping[str, str] | None = None) -> ExtractedListing:
        state = _AttemptState(url=url)
        try:
            return await with_deadline(self._attempt(state, selectors), self.attempt_timeout_s, ExtractionTimeout)
        except ExtractionTimeout:
            logger.warning("Extraction attempt for %s exceeded %.0fs", url, self.attempt_timeout_s)
            return ExtractedListing(
                blocked=True,
                final_url=state.final_url or url,
                screenshot_b64=await self._diagnostic_screenshot(state),
                error="timeout",
            )
        except ExtractionError as e:
            logger.warning("Extraction of %s failed: %s", url, e)
            return ExtractedListing(
                blocked=True,
                final_url=state.final_url or url,
                screenshot_b64=await self._diagnostic_screenshot(state),
                error="render_failed",
            )
        finally:
            if state.session is not None:
                try:
                    await state.session.close()
                except Exception as e:  # noqa: BLE001
                    logger.debug("session close failed: %s", e)

    # ---------- steps ----------

    async def _load(self, session: PageSession, url: str) -> None:
        """goto with domcontentloaded, then once more with commit; raise the last typed error."""
        plan: tuple[tuple[WaitUntil, float], ...] = (
            ("domcontentloaded", self.load_timeout_s),
            ("commit", self.relaxed_timeout_s),
        )
        failures: list[ExtractionError] = []
        for wait_until, timeout_s in plan:
            try:
                with extraction_error_guard():
                    await with_deadline(
                        session.goto(url, wait_until=wait_until, timeout_s=timeout_s),
                        timeout_s + 1.0,
                        ExtractionTimeout,
                    )
                return
            except ExtractionError as e:
                logger.info("goto %s (%s) failed: %s", url, wait_until, e)
                failures.append(e)
        if any(isinstance(e, ExtractionTimeout) for e in failures):
            raise ExtractionTimeout(f"could not load {url}")
        raise failures[-1]

    async def _snapshot(self, session: PageSession) -> tuple[str, str, str]:
        with extraction_error_guard():
            return session.url, (await session.title() or "").strip(), await session.content()

    async def _screenshot(self, session: PageSession) -> str | None:
        if not self.capture_screenshot:
            return None
        try:
            with extraction_error_guard():
                png = await with_deadline(session.screenshot(), self.screenshot_timeout_s, ExtractionTimeout)
        except ExtractionError as e:
            logger.debug("screenshot failed: %s", e)
            return None
        return base64.b64encode(png).decode("ascii")

    def _bounced(self, final_url: str, title: str) -> bool:
        return classify_url(final_url) in _BOUNCE_KINDS or bool(title and _HOME_TITLE.search(title))

    def _blocked(self, final_url: str, title: str, html: str) -> str | None:
        if not title:
            return "empty title"
        if BLOCK_PATTERN.search(title):
            return f"blocked title {title!r}"
        if classify_url(final_url) == "home" and not has_key_elements(make_soup(html)):
            return "home page bounce"
        if is_bare_shell(html, min_text=self.min_body_text):
            return "bare shell"
        return None

    async def _drill(self, session: PageSession, html: str, base_url: str) -> bool:
        href = find_detail_link(html, base_url)
        if not href:
            return False
        logger.info("Auto-drilling %s → %s", base_url, href)
        await self._load(session, href)
        return True

    async def _diagnostic_screenshot(self, state: _AttemptState) -> str | None:
        if state.screenshot_b64 is None and state.session is not None:
            state.screenshot_b64 = await self._screenshot(state.session)
        return state.screenshot_b64

    def _parse(self, html: str, selectors: Mapping[str, str] | None, url: str) -> ListingFields | None:
        try:
            return extract_fields(html, selectors=selectors)
        except Exception:  # noqa: BLE001
            logger.exception("Field extraction failed at %s", url)
            return None

    async def _attempt(self, state: _AttemptState, selectors: Mapping[str, str] | None) -> ExtractedListing:
        with extraction_error_guard():
            session = await self.renderer.new_session()
        state.session = session
        try:
            await self._load(session, state.url)
        except ExtractionError as e:
            state.screenshot_b64 = await self._screenshot(session)
            return ExtractedListing(
                blocked=True,
                final_url=state.url,
                screenshot_b64=state.screenshot_b64,
                error="timeout" if isinstance(e, ExtractionTimeout) else "load_failed",
            )

        final_url, title, html = await self._snapshot(session)
        state.final_url = final_url
        auto_drilled = False

        if self._bounced(final_url, title):
            try:
                auto_drilled = await self._drill(session, html, final_url)
            except ExtractionError as e:
                logger.info("Drill from %s failed: %s", final_url, e)
            if auto_drilled:
                final_url, title, html = await self._snapshot(session)
                state.final_url = final_url

        reason = self._blocked(final_url, title, html)
        if reason:
            logger.info("Blocked at %s: %s", final_url, reason)
            state.screenshot_b64 = await self._screenshot(session)
            return ExtractedListing(
                title=title or None,
                blocked=True,
                auto_drilled=auto_drilled,
                final_url=final_url,
                screenshot_b64=state.screenshot_b64,
            )

        fields = self._parse(html, selectors, final_url)

        if fields is not None and fields.listing_null() and not auto_drilled:
            try:
                auto_drilled = await self._drill(session, html, final_url)
            except ExtractionError as e:
                logger.info("Second-chance drill from %s failed: %s", final_url, e)
            if auto_drilled:
                final_url, title, html = await self._snapshot(session)
                state.final_url = final_url
                fields = self._parse(html, selectors, final_url)

        state.screenshot_b64 = await self._screenshot(session)
        if fields is None:
            return ExtractedListing(
                auto_drilled=auto_drilled,
                final_url=final_url,
                screenshot_b64=state.screenshot_b64,
                error="parse_failed",
            )
        logger.debug("Extracted %s via %s", hostname(final_url), fields.sources)
        return ExtractedListing(
            title=fields.title,
            address=fields.address,
            asking_price=fields.asking_price,
            noi=fields.noi,
            cap_rate=fields.cap_rate,
            auto_drilled=auto_drilled,
            final_url=final_url,
            screenshot_b64=state.screenshot_b64,
        )


__all__ = ["ExtractionEngine", "outcome_error"]
