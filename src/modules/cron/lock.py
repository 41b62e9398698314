"""Distributed lock that keeps a single cron cycle running across replicas."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta

import redis.asyncio as redis
from redis.exceptions import ResponseError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL = timedelta(hours=25)

# Deletes the key only when it still holds our owner token.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _as_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisLock:
    """``SET NX`` lease with a random owner token.

    The TTL outlives a full cycle so a crashed holder only blocks the next
    cycle, never all of them.
    """

    def __init__(self, client: redis.Redis, key: str, ttl: timedelta = DEFAULT_LOCK_TTL) -> None:
        if client is None:
            raise ValueError("redis client required for lock")
        if not key:
            raise ValueError("lock key is required")
        if ttl is None or ttl <= timedelta(0):
            ttl = DEFAULT_LOCK_TTL
        self._client = client
        self.key = key
        self.ttl = ttl
        self.owner: str | None = None

    async def acquire(self) -> bool:
        owner = str(uuid.uuid4())
        acquired = await self._client.set(
            self.key, owner, nx=True, px=int(self.ttl.total_seconds() * 1000)
        )
        if acquired:
            self.owner = owner
            return True
        return False

    async def release(self) -> None:
        if not self.owner:
            return
        try:
            deleted = await self._client.eval(_RELEASE_SCRIPT, 1, self.key, self.owner)
        except ResponseError:
            logger.debug("lock release script unavailable; falling back to GET/DEL", exc_info=True)
            deleted = await self._release_without_script()
        if deleted:
            self.owner = None

    async def _release_without_script(self) -> int:
        current = _as_text(await self._client.get(self.key))
        if current is None or current != self.owner:
            return 0
        await self._client.delete(self.key)
        return 1
