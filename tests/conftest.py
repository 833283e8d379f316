"""Global pytest fixtures.

Every test gets its own in-memory Redis server, so generations and cached
entries never leak between tests.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import fakeredis
import fakeredis.aioredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from vynox.cache import AggregateCache, KeyValueCache, VersionedCache


@pytest.fixture
def redis_client() -> fakeredis.aioredis.FakeRedis:
    """Isolated fake Redis client (bytes responses, like production)."""
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())


@pytest.fixture
def kv(redis_client: fakeredis.aioredis.FakeRedis) -> KeyValueCache:
    return KeyValueCache(redis_client)


@pytest.fixture
def cache(kv: KeyValueCache) -> VersionedCache:
    return VersionedCache(kv)


@pytest.fixture
def aggregates(kv: KeyValueCache) -> AggregateCache:
    return AggregateCache(kv)


@pytest.fixture
def broken_client() -> AsyncMock:
    """Redis client whose every command fails as if the server were down."""
    client = AsyncMock()
    error = RedisConnectionError("Connection refused")
    for command in ("get", "set", "delete", "incr", "ping"):
        getattr(client, command).side_effect = error
    return client
