# dealscout/market/macro.py
"""
Macro data client (FRED + BLS) feeding the risk blender.

Series
------
- FRED DGS10     10-Year Treasury (percent → fraction) + month-over-month delta (bps)
- FRED T10Y2Y    2s10s spread (percent → fraction)
- FRED CPIAUCSL  CPI index; YoY from the 13th-last observation
- FRED UNRATE    national unemployment (percent → fraction)
- BLS LAUS       metro unemployment, series inferred from query text

Every series is independently optional: a missing API key, timeout or bad
payload raises MacroDataUnavailable inside the client and the signal is simply
left as None in MacroSignals.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from dealscout.core.errors import MacroDataUnavailable, macro_error_guard, with_deadline
from dealscout.schemas.models import MacroSignals

logger = logging.getLogger(__name__)

FRED_URL = "https://api.stlouisfed.org/fred/series/observations"
BLS_URL = "https://api.bls.gov/publicAPI/v2/timeseries/data/"

FRED_TTL_S = 12 * 60 * 60
BLS_TTL_S = 24 * 60 * 60

# LAUS metro unemployment-rate series by metro name hints
_METRO_SERIES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"dallas|dfw|plano|arlington", re.I), "LAUMT481910000000003"),
    (re.compile(r"miami|fort lauderdale|west palm", re.I), "LAUMT121146000000003"),
    (re.compile(r"orlando", re.I), "LAUMT123674000000003"),
    (re.compile(r"tampa|st\.?\s?petersburg", re.I), "LAUMT124530000000003"),
    (re.compile(r"jacksonville", re.I), "LAUMT122130000000003"),
    (re.compile(r"phoenix|scottsdale|mesa", re.I), "LAUMT040380000000003"),
    (re.compile(r"atlanta|sandy springs|roswell", re.I), "LAUMT130120000000003"),
    (re.compile(r"austin|round rock", re.I), "LAUMT481230000000003"),
    (re.compile(r"houston|the woodlands|sugar land", re.I), "LAUMT482630000000003"),
    (re.compile(r"san antonio|new braunfels", re.I), "LAUMT484160000000003"),
    (re.compile(r"nashville|davidson|murfreesboro", re.I), "LAUMT473460000000003"),
    (re.compile(r"charlotte|concord|gastonia", re.I), "LAUMT371650000000003"),
    (re.compile(r"raleigh|cary", re.I), "LAUMT374010000000003"),
)


def infer_metro_series_id(text: str) -> str | None:
    for rx, series_id in _METRO_SERIES:
        if rx.search(text or ""):
            return series_id
    return None


class MacroProvider(Protocol):
    async def signals(self, query: str) -> MacroSignals: ...


class TTLCache:
    """Tiny in-process cache keyed by series id."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[float, Any]] = {}

    def get(self, key: str, ttl_s: float) -> Any | None:
        hit = self._data.get(key)
        if hit is None:
            return None
        ts, value = hit
        if self._clock() - ts > ttl_s:
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._data[key] = (self._clock(), value)


class MacroDataClient:
    def __init__(
        self,
        *,
        fred_api_key: str | None = None,
        bls_api_key: str | None = None,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self.fred_api_key = fred_api_key
        self.bls_api_key = bls_api_key
        self.timeout_s = timeout_s
        self._client = client
        self._cache = cache or TTLCache()

    # ---------- transport ----------

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        if self._client is not None:
            resp = await self._client.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                resp = await client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()

    async def _post_json(self, url: str, payload: dict[str, Any]) -> Any:
        if self._client is not None:
            resp = await self._client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                resp = await client.post(url, json=payload)
        resp.raise_for_status()
        return resp.json()

    # ---------- FRED ----------

    async def fred_observations(self, series_id: str) -> list[float]:
        """Numeric observations, oldest first; '.' placeholders dropped."""
        if not self.fred_api_key:
            raise MacroDataUnavailable(f"{series_id}: FRED_API_KEY not configured")
        key = f"fred:{series_id}"
        cached = self._cache.get(key, FRED_TTL_S)
        if cached is not None:
            return cached

        with macro_error_guard(series_id):
            data = await with_deadline(
                self._get_json(
                    FRED_URL,
                    {"series_id": series_id, "api_key": self.fred_api_key, "file_type": "json"},
                ),
                self.timeout_s,
                MacroDataUnavailable,
            )
            if data.get("error_message"):
                raise MacroDataUnavailable(f"{series_id}: {data['error_message']}")
            values = [float(o["value"]) for o in data.get("observations", []) if o.get("value") not in (None, "", ".")]

        if not values:
            raise MacroDataUnavailable(f"{series_id}: no observations")
        self._cache.set(key, values)
        return values

    async def treasury_10y(self) -> tuple[float, float | None]:
        obs = await self.fred_observations("DGS10")
        last = obs[-1] / 100.0
        delta_bps = round((obs[-1] - obs[-2]) * 100) if len(obs) >= 2 else None
        return last, delta_bps

    async def curve_2s10s(self) -> float:
        obs = await self.fred_observations("T10Y2Y")
        return obs[-1] / 100.0

    async def cpi_yoy(self) -> float:
        obs = await self.fred_observations("CPIAUCSL")
        if len(obs) < 13 or obs[-13] == 0:
            raise MacroDataUnavailable("CPIAUCSL: fewer than 13 observations")
        return obs[-1] / obs[-13] - 1.0

    async def national_unemployment(self) -> float:
        obs = await self.fred_observations("UNRATE")
        return obs[-1] / 100.0

    # ---------- BLS ----------

    async def bls_metro_unemployment(self, series_id: str) -> tuple[float, float | None, str | None]:
        """(latest rate %, YoY change pp, period label)."""
        if not self.bls_api_key:
            raise MacroDataUnavailable(f"{series_id}: BLS_API_KEY not configured")
        key = f"bls:{series_id}"
        cached = self._cache.get(key, BLS_TTL_S)
        if cached is not None:
            return cached

        with macro_error_guard(series_id):
            data = await with_deadline(
                self._post_json(BLS_URL, {"seriesid": [series_id], "registrationkey": self.bls_api_key}),
                self.timeout_s,
                MacroDataUnavailable,
            )
            rows = data["Results"]["series"][0]["data"]
            if not rows:
                raise MacroDataUnavailable(f"{series_id}: no observations")
            latest = float(rows[0]["value"])
            yoy = latest - float(rows[12]["value"]) if len(rows) > 12 else None
            period = f"{rows[0].get('periodName', '')} {rows[0].get('year', '')}".strip() or None

        result = (latest, yoy, period)
        self._cache.set(key, result)
        return result

    # ---------- aggregate ----------

    async def signals(self, query: str) -> MacroSignals:
        """Fetch every series independently; unavailable ones stay None."""
        fields: dict[str, Any] = {}

        try:
            fields["treasury_10y"], fields["treasury_10y_delta_bps"] = await self.treasury_10y()
        except MacroDataUnavailable as e:
            logger.info("10Y unavailable: %s", e)
        try:
            fields["curve_2s10s"] = await self.curve_2s10s()
        except MacroDataUnavailable as e:
            logger.info("2s10s unavailable: %s", e)
        try:
            fields["cpi_yoy"] = await self.cpi_yoy()
        except MacroDataUnavailable as e:
            logger.info("CPI unavailable: %s", e)

        series_id = infer_metro_series_id(query)
        if series_id:
            try:
                rate, yoy, period = await self.bls_metro_unemployment(series_id)
                fields.update(metro_unemployment=rate, metro_unemployment_yoy_pp=yoy, metro_period=period)
            except MacroDataUnavailable as e:
                logger.info("Metro unemployment unavailable: %s", e)
        if fields.get("metro_unemployment_yoy_pp") is None:
            try:
                fields["national_unemployment"] = await self.national_unemployment()
            except MacroDataUnavailable as e:
                logger.info("National unemployment unavailable: %s", e)

        return MacroSignals(**fields)


__all__ = ["MacroDataClient", "MacroProvider", "TTLCache", "infer_metro_series_id"]
