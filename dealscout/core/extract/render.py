# dealscout/core/extract/render.py
"""
Playwright-backed PageRenderer (async Chromium).

One browser per renderer, started lazily; one context + tab per PageSession so
cookies/storage never leak between extraction attempts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from .pages import WaitUntil

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class PlaywrightSession:
    def __init__(self, context: BrowserContext, page: Page) -> None:
        self._context = context
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, *, wait_until: WaitUntil, timeout_s: float) -> None:
        await self._page.goto(url, wait_until=wait_until, timeout=int(timeout_s * 1000))
        if wait_until == "commit":
            try:
                await self._page.wait_for_load_state("domcontentloaded", timeout=5000)
            except Exception as e:  # noqa: BLE001
                logger.debug("domcontentloaded not reached after commit: %s", e)

    async def title(self) -> str:
        return await self._page.title()

    async def content(self) -> str:
        return await self._page.content()

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(full_page=True)

    async def close(self) -> None:
        await self._context.close()


class PlaywrightRenderer:
    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
        proxy_server: str | None = None,
        proxy_username: str | None = None,
        proxy_password: str | None = None,
        default_timeout_s: float = 4.0,
    ) -> None:
        self.headless = headless
        self.user_agent = user_agent
        self.proxy_server = proxy_server
        self.proxy_username = proxy_username
        self.proxy_password = proxy_password
        self.default_timeout_s = default_timeout_s
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    def _proxy(self) -> dict[str, str] | None:
        if not self.proxy_server:
            return None
        proxy = {"server": self.proxy_server}
        if self.proxy_username and self.proxy_password:
            proxy.update(username=self.proxy_username, password=self.proxy_password)
        return proxy

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None or not self._browser.is_connected():
                if self._pw is None:
                    self._pw = await async_playwright().start()
                launch: dict[str, Any] = {"headless": self.headless}
                proxy = self._proxy()
                if proxy:
                    logger.info("Using proxy %s for rendering", proxy["server"])
                    launch["proxy"] = proxy
                self._browser = await self._pw.chromium.launch(**launch)
            return self._browser

    async def new_session(self) -> PlaywrightSession:
        browser = await self._ensure_browser()
        context = await browser.new_context(
            user_agent=self.user_agent,
            viewport={"width": 1366, "height": 900},
            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            ignore_https_errors=True,
        )
        context.set_default_timeout(self.default_timeout_s * 1000)
        page = await context.new_page()
        return PlaywrightSession(context, page)

    async def aclose(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._pw is not None:
                await self._pw.stop()
                self._pw = None


__all__ = ["PlaywrightRenderer", "PlaywrightSession", "DEFAULT_USER_AGENT"]
