"""
SolBridge - Position Locks
Redis-backed per-position closure lock shared by the API-process monitor
loop and the Celery backstop sweep, plus a quarantine marker for positions
that must never be exited again automatically.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging
import uuid

import redis.asyncio as redis

logger = logging.getLogger(__name__)

# Delete the key only if we still own it
RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class PositionLockManager:
    """SET NX EX locks keyed by position id"""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 120, prefix: str = "solbridge:position"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _lock_key(self, position_id: int) -> str:
        return f"{self.prefix}:{position_id}:closing"

    def _quarantine_key(self, position_id: int) -> str:
        return f"{self.prefix}:{position_id}:quarantined"

    @asynccontextmanager
    async def hold(self, position_id: int) -> AsyncIterator[bool]:
        """
        Yields True if this worker now owns the closure of `position_id`.
        Yields False when another worker holds it or the position is quarantined.
        """
        if await self.is_quarantined(position_id):
            yield False
            return

        token = uuid.uuid4().hex
        key = self._lock_key(position_id)
        acquired = bool(await self.client.set(key, token, nx=True, ex=self.ttl_seconds))
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await self.client.eval(RELEASE_SCRIPT, 1, key, token)
                except redis.RedisError as e:
                    # Expires on its own after ttl_seconds
                    logger.warning(f"Failed to release lock for position {position_id}: {e}")

    async def quarantine(self, position_id: int, reason: str) -> None:
        """Mark a position as never-retry (no expiry)"""
        await self.client.set(self._quarantine_key(position_id), reason)

    async def is_quarantined(self, position_id: int) -> bool:
        return bool(await self.client.exists(self._quarantine_key(position_id)))
