"""
Redis-based distributed lock.

Keeps periodic jobs (the booking expiry sweep) single-instance when the
API runs as several processes.  Acquire is ``SET key token NX EX ttl``;
release deletes the key only while it still holds our token, checked
atomically in a Lua script so an expired-and-reacquired lock is never
released by its previous owner.
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
    """Raised by the context manager when another owner holds the lock."""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, name: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"chalo:lock:{name}"
        self.ttl = ttl_seconds
        self.token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        """Try once, without blocking.  Returns True if we now own the lock."""
        self.held = bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )
        return self.held

    async def release(self) -> bool:
        """Release if still ours.  Returns True if the key was deleted."""
        deleted = await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        self.held = False
        return bool(deleted)

    async def __aenter__(self) -> "DistributedLock":
        if not await self.acquire():
            raise LockNotAcquired(f"Lock {self.key} is held by another owner")
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.release()
