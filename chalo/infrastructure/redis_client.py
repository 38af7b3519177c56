"""Redis connection pool shared by the expiry lock and event publishing."""

import redis.asyncio as aioredis

from chalo.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url,
    decode_responses=True,
    max_connections=settings.redis_max_connections,
)


async def get_redis() -> aioredis.Redis:
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    """Disconnect pooled connections on shutdown."""
    await _pool.aclose()
