"""Redis client factory — rate-limit counters only.

Nothing balance- or purchase-related is ever stored here; PostgreSQL is the
single source of truth for money and credits.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the shared Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


async def incr_window(redis: aioredis.Redis, key: str, window_seconds: int) -> int:
    """Fixed-window counter: INCR the key and start its TTL on the first hit."""
    count = int(await redis.incr(key))
    if count == 1:
        await redis.expire(key, window_seconds)
    return count
