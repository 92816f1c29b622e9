# dealscout/core/cancel.py

from __future__ import annotations

import asyncio

from .errors import RunCancelled


class CancellationToken:
    """Cooperative cancellation flag checked between pipeline operations."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()


def check(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()
