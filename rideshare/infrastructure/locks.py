"""
Redis-based distributed lock.

Used by the rating-reveal worker so that, with several API processes
running, only one of them sweeps stale ratings per interval.

Acquire is ``SET key token NX EX ttl``; release runs a Lua
compare-and-delete so a lock that expired and was taken over by another
process is never released by the previous owner.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class LockNotAcquired(RuntimeError):
    """Raised by the context manager when another process holds the lock."""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, name: str, ttl_seconds: int = 60
    ):
        self.redis = client
        self.key = f"rideshare:lock:{name}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex

    async def acquire(self) -> bool:
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> bool:
        """True if this instance still owned the lock and removed it."""
        released = await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        return bool(released)

    async def __aenter__(self) -> "DistributedLock":
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.release()
