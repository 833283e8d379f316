"""Cache layer for the admin API.

Provides a Redis read-through cache with generation-based invalidation:
- List queries are keyed by namespace generation + query fingerprint
- Point lookups are keyed by id or another unique field
- Writes delete touched point keys and bump the namespace generation
- Redis outages degrade to cache misses, never to request failures
"""

from vynox.cache.keys import CacheKeys, Namespace, canonical_query, fingerprint
from vynox.cache.redis import KeyValueCache, close_redis, get_redis
from vynox.cache.versioned import AggregateCache, VersionedCache

__all__ = [
    # Keys
    "CacheKeys",
    "Namespace",
    "canonical_query",
    "fingerprint",
    # Client
    "KeyValueCache",
    "get_redis",
    "close_redis",
    # Protocol
    "VersionedCache",
    "AggregateCache",
]
