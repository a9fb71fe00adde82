"""
Shared Redis connection pool.

Redis only backs the rating-reveal lock; no marketplace data lives there.
The pool is created on first use so importing the app never needs Redis.
"""

from typing import Optional

import redis.asyncio as aioredis

from rideshare.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


def get_redis() -> aioredis.Redis:
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
