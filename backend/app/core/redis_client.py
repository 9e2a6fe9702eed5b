"""
Redis client initialization and connection management.

This module provides the Redis client used for per-trip route-resolution locks.
The client is created on first use rather than at import time.
"""

from typing import Optional

import redis.asyncio as redis
from backend.app.core.config import settings


redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """
    Get Redis client instance, creating it on first call.
    """
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=settings.redis_decode_responses,
        )
    return redis_client


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await get_redis().ping()
    except Exception:
        return False


async def close_redis():
    """Close the Redis connection if one was opened."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
