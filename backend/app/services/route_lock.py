"""
Per-trip route resolution lock using Redis.

Keeps two workers from calling the routing provider for the same trip at
the same time. The lock is short-lived (TTL) so a crashed holder can never
block a trip for longer than that.
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.exceptions import RedisError


# Redis key prefix for route locks
ROUTE_LOCK_PREFIX = "route:lock:"

logger = logging.getLogger(__name__)


class RouteResolutionLock:
    """
    Redis-backed mutual exclusion keyed by trip id.

    Waiting is bounded by the TTL: once it elapses the caller proceeds
    unlocked, and a Redis outage degrades to unlocked resolution.
    """

    def __init__(self, redis, ttl_seconds: int = 30, poll_interval: float = 0.2):
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.poll_interval = poll_interval

    @asynccontextmanager
    async def hold(self, trip_id: str) -> AsyncIterator[bool]:
        """
        Hold the lock for trip_id for the duration of the block.

        Yields True when the lock was acquired, False when proceeding without it.
        """
        key = f"{ROUTE_LOCK_PREFIX}{trip_id}"
        token = uuid.uuid4().hex
        acquired = await self._acquire(key, token)
        try:
            yield acquired
        finally:
            if acquired:
                await self._release(key, token)

    async def _acquire(self, key: str, token: str) -> bool:
        deadline = time.monotonic() + self.ttl_seconds
        try:
            while True:
                if await self.redis.set(key, token, ex=self.ttl_seconds, nx=True):
                    return True
                if time.monotonic() >= deadline:
                    logger.warning("Route lock %s still held after %ss, resolving without it", key, self.ttl_seconds)
                    return False
                await asyncio.sleep(self.poll_interval)
        except RedisError as exc:
            logger.warning("Route lock unavailable (%s), resolving without it", exc)
            return False

    async def _release(self, key: str, token: str) -> None:
        try:
            # Only release our own lock; it may have expired and been taken over
            if await self.redis.get(key) == token:
                await self.redis.delete(key)
        except RedisError as exc:
            logger.warning("Could not release route lock %s: %s", key, exc)
