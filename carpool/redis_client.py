import json

import redis.asyncio as aioredis
from carpool.config import get_settings

settings = get_settings()

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=100,
        )
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


# ---------------------------------------------------------------------------
# Cache helpers
# ---------------------------------------------------------------------------

def ride_cache_key(ride_id: str) -> str:
    return f"ride:{ride_id}:status"


async def cache_set(redis: aioredis.Redis, key: str, value: str, ttl: int) -> None:
    await redis.setex(key, ttl, value)


async def cache_get(redis: aioredis.Redis, key: str) -> str | None:
    return await redis.get(key)


async def cache_delete(redis: aioredis.Redis, key: str) -> None:
    await redis.delete(key)


# ---------------------------------------------------------------------------
# Pub/sub
# ---------------------------------------------------------------------------

async def publish_user_event(redis: aioredis.Redis, user_id: str, message: dict) -> int:
    """Push a JSON event on the user's channel; returns the subscriber count."""
    return await redis.publish(f"notifications:{user_id}", json.dumps(message, default=str))
