"""Redis key-value client for the admin API.

The cache is an optimization, never a dependency: every operation on
``KeyValueCache`` degrades to a miss or a no-op when Redis is unreachable,
so callers always fall through to the database. The single exception is a
structural failure of ``increment`` (the key holds a non-integer), which
signals a misconfigured deployment and propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, cast

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from vynox.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Module-level connection pool
_redis_client: Redis | None = None

# Failures that mean "the store is not usable right now"
_UNAVAILABLE = (RedisError, OSError)


async def get_redis() -> Redis | None:
    """Get or create the Redis client.

    Returns None when caching is disabled in settings, which turns every
    cache operation into a pass-through.
    """
    global _redis_client
    if not settings.cache_enabled:
        return None
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            decode_responses=False,
            socket_timeout=settings.cache_socket_timeout,
            socket_connect_timeout=settings.cache_socket_timeout,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None


def _decode_counter(raw: bytes | str | None) -> str | None:
    if raw is None:
        return None
    return raw.decode() if isinstance(raw, bytes) else str(raw)


class KeyValueCache:
    """Best-effort JSON cache over a Redis client.

    A ``KeyValueCache(None)`` is a disabled cache: reads miss and writes
    are dropped.
    """

    def __init__(self, client: Redis | None):
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def get(self, key: str) -> Any | None:
        """Return the decoded value, or None on miss, outage or bad payload."""
        if self.client is None:
            return None
        try:
            raw = await self.client.get(key)
        except _UNAVAILABLE as e:
            logger.warning("Cache get failed for %s: %s", key, e, extra={"cache_key": key})
            return None
        if raw is None:
            logger.debug("Cache MISS: %s", key)
            return None
        try:
            value = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("Discarding undecodable cache entry %s", key, extra={"cache_key": key})
            return None
        logger.debug("Cache HIT: %s", key)
        return value

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Serialize and store with expiry. Returns True if stored."""
        if self.client is None:
            return False
        try:
            payload = orjson.dumps(value)
        except TypeError as e:
            # orjson.JSONEncodeError is a TypeError subclass
            logger.warning("Cache set skipped for %s: %s", key, e, extra={"cache_key": key})
            return False
        try:
            await self.client.set(key, payload, ex=ttl)
        except _UNAVAILABLE as e:
            logger.warning("Cache set failed for %s: %s", key, e, extra={"cache_key": key})
            return False
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    async def delete(self, *keys: str) -> int:
        """Delete keys if present. Returns the number removed (0 on outage)."""
        if self.client is None or not keys:
            return 0
        try:
            return cast(int, await self.client.delete(*keys))
        except _UNAVAILABLE as e:
            logger.warning("Cache delete failed for %s: %s", ", ".join(keys), e)
            return 0

    async def increment(self, key: str) -> int | None:
        """Atomically increment an integer key, creating it at 0 first.

        Returns the new value, or None when the store is unreachable.

        Raises:
            ResponseError: If the key holds a value that is not an integer.
        """
        if self.client is None:
            return None
        try:
            return int(await self.client.incr(key))
        except ResponseError:
            logger.error("Counter %s holds a non-integer value", key)
            raise
        except _UNAVAILABLE as e:
            logger.warning("Cache increment failed for %s: %s", key, e, extra={"cache_key": key})
            return None

    async def read_counter(self, key: str) -> str | None:
        """Read a counter as an opaque string (no JSON decoding)."""
        if self.client is None:
            return None
        try:
            return _decode_counter(await self.client.get(key))
        except _UNAVAILABLE as e:
            logger.warning("Counter read failed for %s: %s", key, e, extra={"cache_key": key})
            return None

    async def init_counter(self, key: str, value: int = 1) -> str | None:
        """Create a counter if absent and return its current value.

        Uses SET NX so a value written by a concurrent initializer or
        increment is never overwritten.
        """
        if self.client is None:
            return None
        try:
            created = await self.client.set(key, value, nx=True)
            if created:
                return str(value)
            return _decode_counter(await self.client.get(key))
        except _UNAVAILABLE as e:
            logger.warning("Counter init failed for %s: %s", key, e, extra={"cache_key": key})
            return None

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        if self.client is None:
            return False
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except _UNAVAILABLE:
            return False
