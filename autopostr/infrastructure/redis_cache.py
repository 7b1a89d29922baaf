# autopostr/infrastructure/redis_cache.py
import os

import redis.asyncio as aioredis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
redis_client = aioredis.from_url(REDIS_URL, decode_responses=True)


def get_redis() -> aioredis.Redis:
    """Return the shared client; looked up at call time so it can be swapped."""
    return redis_client
