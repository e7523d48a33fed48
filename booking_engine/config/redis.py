# booking_engine/config/redis.py
"""Redis configuration and connection setup"""
import threading
from typing import Optional

import redis
import redis.asyncio as aioredis

from booking_engine.config.settings import get_settings

settings = get_settings()

# Redis connection pools
_redis_pool: Optional[aioredis.ConnectionPool] = None
_sync_client: Optional[redis.Redis] = None
_sync_client_lock = threading.Lock()


def get_redis_pool() -> aioredis.ConnectionPool:
    """Get or create async Redis connection pool"""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            retry_on_timeout=True,
        )
    return _redis_pool


async def get_redis() -> aioredis.Redis:
    """Get async Redis client from pool"""
    pool = get_redis_pool()
    return aioredis.Redis(connection_pool=pool)


def get_sync_redis() -> redis.Redis:
    """Get the shared blocking Redis client used for calendar locks"""
    global _sync_client
    if _sync_client is not None:
        return _sync_client
    with _sync_client_lock:
        if _sync_client is None:
            _sync_client = redis.Redis.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                retry_on_timeout=True,
            )
    return _sync_client


# Redis key patterns for different data types
class RedisKeys:
    """Redis key patterns for consistent naming"""

    # Per-provider calendar mutex
    PROVIDER_CALENDAR_LOCK = "provider:{provider_id}:calendar"
