"""Generation-stamped read-through cache.

Every namespace owns a generation counter in Redis. List entries embed the
current generation in their key, so bumping the counter after a write
orphans every cached list of that namespace in O(1); orphaned entries then
expire through their TTL. Point entries (one entity by id or another
unique key) carry no generation and are deleted explicitly on write.

Write protocol, in order:
1. Commit the mutation to the database.
2. Delete the point keys the write touched.
3. Bump the namespace generation (one INCR per logical write).

Invalidating before the commit would let a concurrent reader repopulate
the cache with pre-write data under the old generation.

Example:
    cache = VersionedCache(KeyValueCache(await get_redis()))

    page = await cache.read_through_list(
        Namespace.ADS, {"os_type": "ios", "page": 1, "limit": 50}, load_page
    )

    await session.commit()
    await cache.invalidate_on_write(Namespace.ADS, [CacheKeys(Namespace.ADS).by_id(ad_id)])
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel

from vynox.cache.keys import CacheKeys, Namespace, fingerprint
from vynox.cache.redis import KeyValueCache
from vynox.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Generation reported when caching is disabled; never used in a stored key
DISABLED_GENERATION = "0"


class VersionedCache:
    """Read-through list and point cache with generation-based invalidation."""

    def __init__(
        self,
        kv: KeyValueCache,
        list_ttl: int | None = None,
        point_ttl: int | None = None,
    ):
        self.kv = kv
        self.list_ttl = list_ttl or settings.cache_list_ttl
        self.point_ttl = point_ttl or settings.cache_point_ttl

    # -------------------------------------------------------------------------
    # Generations
    # -------------------------------------------------------------------------

    async def current_generation(self, namespace: Namespace | str) -> str | None:
        """Return the namespace generation, creating it as "1" if absent.

        The value is opaque: callers only embed it in keys. None means the
        counter could neither be read nor created.
        """
        if not self.kv.enabled:
            return DISABLED_GENERATION
        key = CacheKeys(namespace).version()
        generation = await self.kv.read_counter(key)
        if generation is not None:
            return generation
        return await self.kv.init_counter(key)

    async def bump_generation(self, namespace: Namespace | str) -> int | None:
        """Advance the namespace generation, orphaning its list entries."""
        return await self.kv.increment(CacheKeys(namespace).version())

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    async def list_key(
        self,
        namespace: Namespace | str,
        params: Mapping[str, Any] | BaseModel,
        related: Iterable[Namespace | str] = (),
    ) -> str | None:
        """Derive the list key for a query under the current generation.

        Generations of ``related`` namespaces join the fingerprint, so a
        list that embeds rows of another entity type is also orphaned by
        writes to that type. None if any generation is unknown.
        """
        generation = await self.current_generation(namespace)
        if generation is None:
            return None
        payload: dict[str, Any] = {"q": params}
        deps = {CacheKeys(ns).name: await self.current_generation(ns) for ns in related}
        if None in deps.values():
            return None
        if deps:
            payload["deps"] = deps
        return CacheKeys(namespace).list(generation, fingerprint(payload))

    async def read_through_list(
        self,
        namespace: Namespace | str,
        params: Mapping[str, Any] | BaseModel,
        compute: Callable[[], Awaitable[T]],
        ttl: int | None = None,
        related: Iterable[Namespace | str] = (),
    ) -> T:
        """Serve a list query from cache, computing and storing it on miss.

        Cached payloads are returned verbatim, without re-validation.
        """
        if not self.kv.enabled:
            return await compute()

        key = await self.list_key(namespace, params, related)
        if key is None:
            # Without a generation a stored entry could never be orphaned
            return await compute()
        cached = await self.kv.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        result = await compute()
        await self.kv.set(key, result, ttl or self.list_ttl)
        return result

    async def read_through_point(
        self,
        key: str,
        compute: Callable[[], Awaitable[T | None]],
        ttl: int | None = None,
    ) -> T | None:
        """Serve a single entity from cache; absent entities are not cached."""
        cached = await self.kv.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        result = await compute()
        if result is not None:
            await self.kv.set(key, result, ttl or self.point_ttl)
        return result

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    async def invalidate_on_write(
        self,
        namespace: Namespace | str,
        point_keys: Iterable[str] = (),
    ) -> None:
        """Drop the point keys touched by a committed write, then bump.

        Must run after the database commit and before the response is
        returned to the writer.
        """
        keys = list(dict.fromkeys(point_keys))
        if keys:
            await self.kv.delete(*keys)
        generation = await self.bump_generation(namespace)
        logger.debug(
            "Invalidated %s (generation=%s, point_keys=%d)",
            CacheKeys(namespace).namespace,
            generation,
            len(keys),
        )


class AggregateCache:
    """TTL-only cache for results spanning several namespaces.

    There is no single generation to bump for such results, so staleness
    is bounded by the (short) TTL alone and no invalidation hook exists.
    """

    def __init__(self, kv: KeyValueCache, ttl: int | None = None):
        self.kv = kv
        self.ttl = ttl or settings.cache_aggregate_ttl

    async def read_through(
        self,
        namespace: Namespace | str,
        params: Mapping[str, Any] | BaseModel,
        compute: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T:
        key = CacheKeys(namespace).aggregate(fingerprint(params))
        cached = await self.kv.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        result = await compute()
        await self.kv.set(key, result, ttl or self.ttl)
        return result
