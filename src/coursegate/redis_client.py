"""Redis connection pool.

Learn: Redis backs the rate limiter only. The app starts without it:
init_redis() is skipped when no URL is configured, and callers use
redis_available() to decide whether to rely on it.
"""

from typing import Optional

import redis.asyncio as redis

_pool: Optional[redis.Redis] = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool
    _pool = redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool
    if _pool:
        await _pool.aclose()
        _pool = None


def redis_available() -> bool:
    return _pool is not None


def get_redis() -> redis.Redis:
    """Get the Redis client."""
    if _pool is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _pool
