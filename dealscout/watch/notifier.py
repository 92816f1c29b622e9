# dealscout/watch/notifier.py
"""
Alert fan-out: in-process subscribers first, then an optional JSON webhook.

Delivery problems are logged and never raised; a broken webhook must not fail
the watch cycle that produced the alert.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from typing import Any

import httpx

from dealscout.schemas.models import AlertNotification

logger = logging.getLogger(__name__)

AlertCallback = Callable[[AlertNotification], None]


def webhook_payload(alert: AlertNotification) -> dict[str, Any]:
    payload = alert.model_dump(mode="json")
    payload["text"] = alert.text()
    return payload


class Notifier:
    def __init__(
        self,
        webhook_url: str | None = None,
        *,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout_s = timeout_s
        self._client = client
        self._subs: dict[int, AlertCallback] = {}
        self._ids = itertools.count(1)

    def subscribe(self, callback: AlertCallback) -> Callable[[], None]:
        token = next(self._ids)
        self._subs[token] = callback

        def unsubscribe() -> None:
            self._subs.pop(token, None)

        return unsubscribe

    async def notify(self, alert: AlertNotification) -> None:
        for token, callback in list(self._subs.items()):
            if token not in self._subs:
                continue
            try:
                callback(alert)
            except Exception:  # noqa: BLE001
                logger.exception("Alert subscriber failed for watchlist %s", alert.watch_id)

        if self.webhook_url:
            await self._post(alert)

    async def _post(self, alert: AlertNotification) -> None:
        if not self.webhook_url:
            return
        payload = webhook_payload(alert)
        try:
            if self._client is not None:
                resp = await asyncio.wait_for(self._client.post(self.webhook_url, json=payload), self.timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    resp = await asyncio.wait_for(client.post(self.webhook_url, json=payload), self.timeout_s)
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
            logger.warning("Webhook delivery for %s failed: %s", alert.watch_id, e or type(e).__name__)
            return
        logger.info("Webhook delivered alert for %s (%d new, %d changed)", alert.watch_id, alert.new_count, alert.changed_count)


__all__ = ["Notifier", "webhook_payload"]
