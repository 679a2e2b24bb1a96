"""Redis client for short-lived response caching."""

import asyncio
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from andaya.config import settings

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# Key prefixes for namespace organization
FX_PREFIX = "fx:latest:"

# Timeout for Redis operations (2 seconds)
REDIS_TIMEOUT = 2.0


async def init_redis():
    """Initialize Redis connection with connection pooling.

    Raises:
        Exception: If connection fails or cannot be validated
    """
    global redis_client
    try:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )

        await redis_client.ping()
        logger.info("Redis connection initialized and validated")

    except Exception as e:
        logger.error(f"Failed to initialize Redis connection: {e}")
        if redis_client:
            try:
                await redis_client.aclose()
            except Exception as close_error:
                logger.debug(f"Error closing failed Redis client: {close_error}")
        redis_client = None
        raise Exception(f"Redis connection initialization failed: {e}") from e


async def close_redis():
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


async def check_redis_health() -> bool:
    """Ping Redis; False when not initialized or unreachable."""
    if not redis_client:
        return False
    try:
        return bool(await asyncio.wait_for(redis_client.ping(), timeout=REDIS_TIMEOUT))
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return False


# ============================================================================
# JSON cache helpers
# ============================================================================


async def cache_json(key: str, value: Any, ttl: int) -> bool:
    """Store a JSON-serializable value with a TTL. Returns False when skipped."""
    if not redis_client:
        return False
    try:
        await asyncio.wait_for(
            redis_client.setex(key, ttl, json.dumps(value, default=str)),
            timeout=REDIS_TIMEOUT,
        )
        return True
    except Exception as e:
        logger.warning(f"Failed to cache {key}: {e}")
        return False


async def get_cached_json(key: str) -> Optional[Any]:
    """Read a cached JSON value; None on miss or when Redis is unavailable."""
    if not redis_client:
        return None
    try:
        raw = await asyncio.wait_for(redis_client.get(key), timeout=REDIS_TIMEOUT)
    except Exception as e:
        logger.warning(f"Failed to read cache {key}: {e}")
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Discarding corrupt cache entry {key}")
        return None


async def invalidate(pattern: str) -> int:
    """Delete keys matching a glob pattern. Returns the number of keys removed."""
    if not redis_client:
        return 0
    removed = 0
    try:
        async for key in redis_client.scan_iter(match=pattern):
            removed += await redis_client.delete(key)
    except Exception as e:
        logger.warning(f"Failed to invalidate {pattern}: {e}")
    return removed


# ============================================================================
# Exchange rate cache
# ============================================================================


def fx_cache_key(provider: str, code: str) -> str:
    return f"{FX_PREFIX}{provider}:{code}"


async def cache_fx_rate(provider: str, code: str, rate: dict, ttl: int = None) -> bool:
    return await cache_json(fx_cache_key(provider, code), rate, ttl or settings.FX_CACHE_TTL)


async def get_cached_fx_rate(provider: str, code: str) -> Optional[dict]:
    return await get_cached_json(fx_cache_key(provider, code))


async def invalidate_fx_cache() -> int:
    return await invalidate(f"{FX_PREFIX}*")
