"""Per-user fixed-window rate limiting backed by Redis.

Applied as a FastAPI dependency rather than global middleware so only the
endpoints that start paid work (checkout creation) are limited:

    @router.post("/checkout", dependencies=[Depends(checkout_rate_limit)])

Key pattern: "ratelimit:{scope}:{user_id}:{window_start}".
Redis being unreachable fails open with a warning: a rate limiter outage must
not block purchases.
"""

import logging
import time
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends

from config.settings import settings
from src.vd_common.errors import RateLimitError
from src.vd_common.redis_client import get_redis, incr_window
from src.vd_gateway.auth.dependencies import get_current_user
from src.vd_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60


async def enforce_rate_limit(
    redis: aioredis.Redis, scope: str, subject: str, limit: int
) -> None:
    window_start = int(time.time()) // _WINDOW_SECONDS
    key = f"ratelimit:{scope}:{subject}:{window_start}"
    try:
        count = await incr_window(redis, key, _WINDOW_SECONDS)
    except aioredis.RedisError as exc:
        logger.warning("rate limiter unavailable, failing open: %s", exc)
        return
    if count > limit:
        raise RateLimitError()


async def checkout_rate_limit(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    redis: Annotated[aioredis.Redis, Depends(get_redis)],
) -> None:
    await enforce_rate_limit(
        redis,
        "checkout",
        str(current_user.id),
        settings.CHECKOUT_RATE_LIMIT_PER_MINUTE,
    )
