"""Tests for the Redis-backed exchange rate cache."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from andaya.services import redis_client
from andaya.tools import fx_tools


class FakeRedis:
    """Dict-backed stand-in for the few redis.asyncio calls the cache makes."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    async def scan_iter(self, match=None):
        prefix = match.rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key


@pytest.fixture
def fake_redis():
    fake = FakeRedis()
    with patch.object(redis_client, "redis_client", fake):
        yield fake


@pytest.mark.asyncio
async def test_cache_round_trip(fake_redis):
    rate = {"provider": "bcv", "code": "USD", "value": 36.5}

    assert await redis_client.cache_fx_rate("bcv", "USD", rate, ttl=60) is True

    assert fake_redis.ttls["fx:latest:bcv:USD"] == 60
    assert await redis_client.get_cached_fx_rate("bcv", "USD") == rate


@pytest.mark.asyncio
async def test_corrupt_entry_is_a_miss(fake_redis):
    fake_redis.store["fx:latest:bcv:USD"] = "{not json"

    assert await redis_client.get_cached_fx_rate("bcv", "USD") is None


@pytest.mark.asyncio
async def test_invalidate_only_touches_fx_keys(fake_redis):
    fake_redis.store.update({"fx:latest:bcv:USD": "{}", "fx:latest:bcv:EUR": "{}", "other": "x"})

    assert await redis_client.invalidate_fx_cache() == 2
    assert list(fake_redis.store) == ["other"]


@pytest.mark.asyncio
async def test_without_redis_everything_is_skipped():
    with patch.object(redis_client, "redis_client", None):
        assert await redis_client.cache_fx_rate("bcv", "USD", {"value": 1}) is False
        assert await redis_client.get_cached_fx_rate("bcv", "USD") is None
        assert await redis_client.invalidate_fx_cache() == 0
        assert await redis_client.check_redis_health() is False


@pytest.mark.asyncio
async def test_cached_rate_skips_database(fake_redis):
    fetched_at = datetime.now(timezone.utc) - timedelta(hours=30)
    await redis_client.cache_fx_rate(
        "bcv",
        "USD",
        {"provider": "bcv", "code": "USD", "value": 36.5, "fetched_at": fetched_at.isoformat()},
    )
    db = AsyncMock()

    result = await fx_tools.get_latest_rate(db, "bcv", "USD")

    db.scalar.assert_not_called()
    assert result["rate"]["value"] == 36.5
    # Staleness is recomputed from the cached timestamp
    assert result["stale"] is True
