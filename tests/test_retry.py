"""
Unit tests for Retry utilities.

Tests async retry logic with exponential backoff. ``asyncio.sleep`` is
patched so the delays are asserted instead of waited for.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from andaya.utils.retry import with_retry


class FlakyCall:
    """Async callable that fails N times then succeeds."""

    def __init__(self, failures: int, exc: Exception = None):
        self.failures = failures
        self.exc = exc or httpx.ConnectError("connection refused")
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "success"


@pytest.mark.asyncio
async def test_with_retry_succeeds_immediately():
    call = FlakyCall(0)
    with patch("andaya.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await with_retry(call, max_retries=3) == "success"

    assert call.calls == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_with_retry_succeeds_after_failures():
    call = FlakyCall(2)
    with patch("andaya.utils.retry.asyncio.sleep", new=AsyncMock()):
        assert await with_retry(call, max_retries=3) == "success"

    assert call.calls == 3


@pytest.mark.asyncio
async def test_with_retry_exhausts_retries():
    call = FlakyCall(5)
    with patch("andaya.utils.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(httpx.ConnectError):
            await with_retry(call, max_retries=3)

    assert call.calls == 3


@pytest.mark.asyncio
async def test_with_retry_exponential_backoff():
    call = FlakyCall(2)
    with patch("andaya.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        await with_retry(call, max_retries=3, initial_delay=1.0, backoff_factor=1.5)

    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 1.5]


@pytest.mark.asyncio
async def test_with_retry_respects_max_delay():
    call = FlakyCall(3)
    with patch("andaya.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        await with_retry(call, max_retries=4, initial_delay=1.0, backoff_factor=3.0, max_delay=2.0)

    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 2.0]


@pytest.mark.asyncio
async def test_with_retry_only_retries_listed_exceptions():
    call = FlakyCall(1, exc=ValueError("bad payload"))
    with patch("andaya.utils.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(ValueError):
            await with_retry(call, max_retries=3, retry_on=(httpx.TransportError,))

    assert call.calls == 1
