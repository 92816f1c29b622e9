# dealscout/core/extract/pages.py
"""
Rendering seam for the extraction engine.

A PageRenderer hands out one PageSession per extraction attempt; the session
wraps a single browser tab. Production uses PlaywrightRenderer (render.py);
tests use an HTML-per-url fake.
"""

from __future__ import annotations

from typing import Literal, Protocol

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]


class PageSession(Protocol):
    @property
    def url(self) -> str: ...

    async def goto(self, url: str, *, wait_until: WaitUntil, timeout_s: float) -> None: ...

    async def title(self) -> str: ...

    async def content(self) -> str: ...

    async def screenshot(self) -> bytes: ...

    async def close(self) -> None: ...


class PageRenderer(Protocol):
    async def new_session(self) -> PageSession: ...

    async def aclose(self) -> None: ...


__all__ = ["PageRenderer", "PageSession", "WaitUntil"]
