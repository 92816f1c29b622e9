# dealscout/core/search/provider.py
"""
Search providers.

`SearchProvider` is the injection seam used by the cascade; `SerperSearchProvider`
is the production implementation (Google results via serper.dev).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from dealscout.core.errors import SearchProviderError, search_error_guard
from dealscout.schemas.models import SearchHit

logger = logging.getLogger(__name__)

SERPER_URL = "https://google.serper.dev/search"


class SearchProvider(Protocol):
    async def search(self, query: str, *, num: int = 10) -> list[SearchHit]: ...


def parse_serper_payload(data: Any, *, limit: int | None = None) -> list[SearchHit]:
    """`organic[].{title, link, snippet}` → SearchHit list; rows without a link are dropped."""
    if not isinstance(data, dict):
        raise SearchProviderError("serper payload is not a JSON object")
    rows = data.get("organic") or []
    hits: list[SearchHit] = []
    for row in rows:
        if not isinstance(row, dict) or not row.get("link"):
            continue
        hits.append(
            SearchHit(
                title=str(row.get("title") or ""),
                url=str(row["link"]),
                snippet=str(row.get("snippet") or ""),
            )
        )
    return hits[:limit] if limit else hits


class SerperSearchProvider:
    def __init__(
        self,
        api_key: str | None,
        *,
        endpoint: str = SERPER_URL,
        timeout_s: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout_s = timeout_s
        self._client = client

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"X-API-KEY": self.api_key or "", "Content-Type": "application/json"}
        if self._client is not None:
            return await self._client.post(self.endpoint, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.post(self.endpoint, json=payload, headers=headers)

    async def search(self, query: str, *, num: int = 10) -> list[SearchHit]:
        if not self.api_key:
            raise SearchProviderError("SERPER_API_KEY missing")
        with search_error_guard():
            resp = await self._post({"q": query, "num": num})
            resp.raise_for_status()
            hits = parse_serper_payload(resp.json(), limit=num)
        logger.debug("serper %r → %d hits", query, len(hits))
        return hits


__all__ = ["SearchProvider", "SerperSearchProvider", "parse_serper_payload", "SERPER_URL"]
