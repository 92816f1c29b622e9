# tests/unit/test_errors.py
import asyncio

import httpx
import pytest

from dealscout.core.cancel import CancellationToken, check
from dealscout.core.errors import (
    ExtractionBlocked,
    ExtractionError,
    ExtractionTimeout,
    RunCancelled,
    SearchProviderError,
    SearchTimeout,
    classify_extraction_error,
    classify_search_error,
    extraction_error_guard,
    search_error_guard,
    with_deadline,
)


class FakeTimeoutError(Exception):
    """Stands in for playwright's TimeoutError, matched by class name."""


def test_classify_search_error():
    assert isinstance(classify_search_error(asyncio.TimeoutError()), SearchTimeout)
    assert isinstance(classify_search_error(httpx.ConnectTimeout("slow")), SearchTimeout)
    req = httpx.Request("POST", "https://google.serper.dev/search")
    status = httpx.HTTPStatusError("boom", request=req, response=httpx.Response(429, request=req))
    err = classify_search_error(status)
    assert isinstance(err, SearchProviderError) and "HTTP 429" in str(err)
    same = SearchTimeout("x")
    assert classify_search_error(same) is same
    assert isinstance(classify_search_error(KeyError("organic")), SearchProviderError)


def test_classify_extraction_error():
    assert isinstance(classify_extraction_error(FakeTimeoutError("Timeout 20000ms exceeded")), ExtractionTimeout)
    assert isinstance(classify_extraction_error(RuntimeError("net::ERR chrome-error://chromewebdata")), ExtractionBlocked)
    generic = classify_extraction_error(RuntimeError("Target closed"))
    assert type(generic) is ExtractionError


def test_guards_normalize_exceptions():
    with pytest.raises(SearchProviderError):
        with search_error_guard():
            raise ValueError("bad json")
    with pytest.raises(ExtractionBlocked):
        with extraction_error_guard():
            raise RuntimeError("Access Denied")
    with pytest.raises(ExtractionTimeout):
        with extraction_error_guard():
            raise ExtractionTimeout("passes through")


@pytest.mark.asyncio
async def test_with_deadline():
    assert await with_deadline(asyncio.sleep(0, result=7), 1, SearchTimeout) == 7
    with pytest.raises(SearchTimeout):
        await with_deadline(asyncio.sleep(1), 0.01, SearchTimeout)


@pytest.mark.asyncio
async def test_cancellation_token():
    token = CancellationToken()
    check(token)
    check(None)
    token.cancel("client went away")
    token.cancel("second reason ignored")
    assert token.cancelled and token.reason == "client went away"
    with pytest.raises(RunCancelled, match="client went away"):
        check(token)
    await asyncio.wait_for(token.wait(), 1)
