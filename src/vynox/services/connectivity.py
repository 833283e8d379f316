"""User session tracking.

A session is open while ``disconnected_at`` is NULL; each (user, server)
pair has at most one open session, cached under its ``open`` point key.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from vynox.api.errors import ConflictError
from vynox.cache import AggregateCache, CacheKeys, Namespace, VersionedCache
from vynox.config import settings
from vynox.persistence.repositories import ConnectivityRepository
from vynox.persistence.tables import ConnectivityTable
from vynox.services.base import EntityService, clamp_page, paginate, shape


def stats_item(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "server": {
            "id": str(row["id"]),
            "name": row["name"],
            "country": row["country"] or "",
            "city": row["city"] or "",
            "os_type": row["os_type"],
        },
        "connections": {"total": int(row["total"]), "active": int(row["active"])},
    }


def session_point_keys(sessions: Iterable[tuple[str, str, str]]) -> list[str]:
    """Id and open-pair keys of ``(id, user_id, server_id)`` sessions."""
    keys = CacheKeys(Namespace.CONNECTIVITY)
    point_keys: list[str] = []
    for session_id, user_id, server_id in sessions:
        point_keys += [keys.by_id(session_id), keys.open_pair(user_id, server_id)]
    return point_keys


class ConnectivityService(EntityService[ConnectivityRepository]):
    namespace = Namespace.CONNECTIVITY

    def __init__(
        self,
        repo: ConnectivityRepository,
        cache: VersionedCache,
        aggregates: AggregateCache,
    ):
        super().__init__(repo, cache)
        self.aggregates = aggregates

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get(session_id))

        return await self.cache.read_through_point(
            self.keys.by_id(session_id), load, ttl=settings.cache_session_ttl
        )

    async def get_open_session(self, user_id: str, server_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.find_open(user_id, server_id))

        return await self.cache.read_through_point(
            self.keys.open_pair(user_id, server_id), load, ttl=settings.cache_open_pair_ttl
        )

    async def connect(self, user_id: str, server_id: str) -> dict[str, Any]:
        """Open a session.

        Raises:
            ConflictError: If the pair already has an open session.
        """
        pair = f"{user_id}:{server_id}"
        if await self.repo.find_open(user_id, server_id) is not None:
            raise ConflictError("Open session", pair)
        async with self.writing("Open session", pair):
            row = await self.repo.add(
                ConnectivityTable(
                    user_id=user_id,
                    server_id=server_id,
                    connected_at=datetime.now(UTC),
                    disconnected_at=None,
                )
            )
        await self.invalidate([self.keys.open_pair(user_id, server_id)])
        return row.to_dict()

    async def disconnect(self, user_id: str, server_id: str) -> dict[str, Any] | None:
        """Close the open session of a pair; None if there is none."""
        async with self.writing("Open session", f"{user_id}:{server_id}"):
            row = await self.repo.close_open(user_id, server_id, datetime.now(UTC))
        if row is None:
            return None
        await self.invalidate([self.keys.open_pair(user_id, server_id), self.keys.by_id(row.id)])
        return row.to_dict()

    async def delete_session(self, session_id: str) -> bool:
        async with self.writing("Session", session_id):
            row = await self.repo.delete(session_id)
        if row is None:
            return False
        await self.invalidate(
            [self.keys.by_id(session_id), self.keys.open_pair(row.user_id, row.server_id)]
        )
        return True

    async def servers_with_connection_stats(
        self,
        page: int = 1,
        limit: int | None = None,
        os_type: str | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        """Servers by name with total and active session counts.

        Spans the server and session namespaces, so it is cached by TTL only.
        """
        page, limit = clamp_page(page, limit)
        search = (search or "").strip() or None

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.server_stats_page(page, limit, os_type, search)
            return paginate([stats_item(row) for row in rows], total, page, limit)

        params = {
            "view": "server-stats",
            "page": page,
            "limit": limit,
            "os_type": os_type,
            "search": search,
        }
        return await self.aggregates.read_through(self.namespace, params, load)
