# dealscout/core/errors.py
"""
Typed errors + guards for the discovery and monitoring pipeline.

Exports
-------
- DealScoutError (base)
- SearchError, SearchTimeout, SearchProviderError
- ExtractionError, ExtractionTimeout, ExtractionBlocked, ExtractionEmpty
- MacroDataUnavailable, SnapshotUnreadable, WatchlistConfigMissing
- RunNotFound, RunCancelled
- SEARCH_ERRORS, EXTRACTION_ERRORS
- classify_search_error(exc), classify_extraction_error(exc)
- search_error_guard(), extraction_error_guard(), macro_error_guard()
- with_deadline(awaitable, seconds, error_cls)
- BLOCK_PATTERN   (shared regex for WAF/CAPTCHA/access-denied detection)
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from typing import TypeVar

import httpx

T = TypeVar("T")

# =========================
# Exception types
# =========================


class DealScoutError(RuntimeError):
    """Base class for pipeline failures."""


class SearchError(DealScoutError):
    """A search stage could not produce hits."""


class SearchTimeout(SearchError):
    """The search provider did not answer within the stage deadline."""


class SearchProviderError(SearchError):
    """Provider misconfiguration, HTTP failure or malformed payload."""


class ExtractionError(DealScoutError):
    """A page could not be turned into listing facts."""


class ExtractionTimeout(ExtractionError):
    """Page load or the whole attempt exceeded its deadline."""


class ExtractionBlocked(ExtractionError):
    """Anti-bot page, access denied, or an empty shell was served."""


class ExtractionEmpty(ExtractionError):
    """The page loaded but no listing field could be located."""


class MacroDataUnavailable(DealScoutError):
    """A macro series is unavailable (missing key, timeout, bad payload)."""


class SnapshotUnreadable(DealScoutError):
    """A stored snapshot record exists but cannot be decoded."""


class WatchlistConfigMissing(DealScoutError):
    """A scheduled watchlist id no longer has a definition."""


class RunNotFound(DealScoutError):
    """Unknown run id."""


class RunCancelled(DealScoutError):
    """A run was cancelled between stages."""


SEARCH_ERRORS = (SearchTimeout, SearchProviderError)

EXTRACTION_ERRORS = (ExtractionTimeout, ExtractionBlocked, ExtractionEmpty)

# Common WAF/CAPTCHA markers found in titles/bodies/messages
BLOCK_PATTERN = re.compile(
    r"(captcha|cf-chl|cloudflare|hcaptcha|recaptcha|akamai|incapsula|imperva|robot\s*check"
    r"|access\s*denied|chrome-error|just\s+a\s+moment|attention\s+required)",
    re.IGNORECASE,
)

# =========================
# Classification helpers
# =========================


def classify_search_error(exc: Exception) -> SearchError:
    """
    Map arbitrary exceptions raised while querying a provider to a SearchError subclass.

      - asyncio / httpx timeouts → SearchTimeout
      - httpx transport / status errors → SearchProviderError
      - Any SearchError → passed through
      - Fallback → SearchProviderError
    """
    if isinstance(exc, SearchError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return SearchTimeout(str(exc) or "search timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        return SearchProviderError(f"HTTP {exc.response.status_code} from {exc.request.url}")
    return SearchProviderError(f"{type(exc).__name__}: {exc}")


def classify_extraction_error(exc: Exception) -> ExtractionError:
    """
    Map renderer/parser exceptions to an ExtractionError subclass.

    Playwright errors are matched by type name so this module does not import the
    browser stack.
    """
    if isinstance(exc, ExtractionError):
        return exc
    msg = f"{type(exc).__name__}: {exc}"
    if isinstance(exc, asyncio.TimeoutError) or "TimeoutError" in type(exc).__name__:
        return ExtractionTimeout(msg)
    if BLOCK_PATTERN.search(msg):
        return ExtractionBlocked(msg)
    return ExtractionError(msg)


@contextmanager
def search_error_guard() -> Iterator[None]:
    """Normalize unexpected exceptions from provider internals."""
    try:
        yield
    except SEARCH_ERRORS:
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_search_error(exc) from exc


@contextmanager
def extraction_error_guard() -> Iterator[None]:
    """Normalize unexpected exceptions from renderer internals."""
    try:
        yield
    except (ExtractionError,):
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_extraction_error(exc) from exc


@contextmanager
def macro_error_guard(series: str) -> Iterator[None]:
    """Everything that goes wrong while fetching a macro series becomes MacroDataUnavailable."""
    try:
        yield
    except MacroDataUnavailable:
        raise
    except (httpx.HTTPError, asyncio.TimeoutError, ValueError, KeyError, IndexError, TypeError) as exc:
        raise MacroDataUnavailable(f"{series}: {type(exc).__name__}: {exc}") from exc


async def with_deadline(aw: Awaitable[T], seconds: float, error_cls: type[DealScoutError]) -> T:
    """Await `aw` under a hard deadline; expiry raises `error_cls` instead of asyncio.TimeoutError."""
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise error_cls(f"deadline of {seconds:g}s exceeded") from exc


__all__ = [
    "DealScoutError",
    "SearchError",
    "SearchTimeout",
    "SearchProviderError",
    "ExtractionError",
    "ExtractionTimeout",
    "ExtractionBlocked",
    "ExtractionEmpty",
    "MacroDataUnavailable",
    "SnapshotUnreadable",
    "WatchlistConfigMissing",
    "RunNotFound",
    "RunCancelled",
    "SEARCH_ERRORS",
    "EXTRACTION_ERRORS",
    "BLOCK_PATTERN",
    "classify_search_error",
    "classify_extraction_error",
    "search_error_guard",
    "extraction_error_guard",
    "macro_error_guard",
    "with_deadline",
]
