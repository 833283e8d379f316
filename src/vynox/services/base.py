"""Shared plumbing for entity services.

A service combines a repository with the versioned cache. Reads go
through ``read_through_list`` / ``read_through_point``; writes commit first
and invalidate afterwards:

    async with self.writing("Ad", ad_id):
        row = await self.repo.update(ad_id, changes)
    await self.cache.invalidate_on_write(Namespace.ADS, [self.keys.by_id(ad_id)])
"""

from __future__ import annotations

import math
from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

from sqlalchemy.exc import IntegrityError

from vynox.api.errors import ConflictError
from vynox.cache import CacheKeys, Namespace, VersionedCache
from vynox.config import settings
from vynox.persistence.repositories import BaseRepository
from vynox.persistence.tables import Base

RepoT = TypeVar("RepoT", bound=BaseRepository[Any])


def clamp_page(page: int, limit: int | None) -> tuple[int, int]:
    """Normalize paging input to ``page >= 1`` and ``1 <= limit <= max``."""
    if limit is None:
        limit = settings.default_page_limit
    return max(page, 1), min(max(limit, 1), settings.max_page_limit)


def paginate(data: Sequence[Any], total: int, page: int, limit: int) -> dict[str, Any]:
    """Standard list response body."""
    return {
        "success": True,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": max(1, math.ceil(total / limit)),
        },
        "data": list(data),
    }


def shape(row: Base | None) -> dict[str, Any] | None:
    return row.to_dict() if row is not None else None


class EntityService(Generic[RepoT]):
    """Base class wiring one repository to one cache namespace."""

    namespace: Namespace

    def __init__(self, repo: RepoT, cache: VersionedCache):
        self.repo = repo
        self.cache = cache
        self.keys = CacheKeys(self.namespace)

    @asynccontextmanager
    async def writing(self, resource_type: str, identifier: str) -> AsyncIterator[None]:
        """Commit the enclosed write; unique violations become ConflictError."""
        try:
            yield
            await self.repo.commit()
        except IntegrityError:
            await self.repo.rollback()
            raise ConflictError(resource_type, identifier) from None

    async def invalidate(self, point_keys: Iterable[str] = ()) -> None:
        await self.cache.invalidate_on_write(self.namespace, point_keys)

    async def invalidate_related(self, point_keys: Mapping[Namespace, Iterable[str]]) -> None:
        """Invalidate further namespaces whose entries embed or hang off the written rows."""
        for namespace, keys in point_keys.items():
            await self.cache.invalidate_on_write(namespace, keys)
