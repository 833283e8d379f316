"""VPN server service.

Server list items embed their country and city, so server lists are keyed
with the generations of both namespaces as well as their own.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from vynox.api.errors import ConflictError
from vynox.cache import CacheKeys, Namespace, VersionedCache
from vynox.core.filters import ServerFilter, ServerMode
from vynox.core.payloads import (
    OpenVpnConfig,
    ServerCreate,
    ServerUpdate,
    WireguardConfig,
    XrayConfig,
)
from vynox.persistence.repositories import (
    ConnectivityRepository,
    FeedbackRepository,
    ServerRepository,
    is_uuid,
)
from vynox.persistence.tables import ConnectivityTable, FeedbackTable, ServerTable
from vynox.services.base import EntityService, clamp_page, paginate
from vynox.services.connectivity import session_point_keys

EMBEDDED = (Namespace.COUNTRIES, Namespace.CITIES)
PROTOCOLS = ("openvpn", "wireguard", "xray")


def is_configured(config: dict[str, Any] | None) -> bool:
    """True if a protocol config holds any non-empty value."""
    if not config:
        return False
    return any(v not in (None, "") for v in config.values())


def detect_protocol(row: ServerTable) -> str | None:
    """First configured protocol in openvpn, wireguard, xray order."""
    for protocol in PROTOCOLS:
        if is_configured(getattr(row, f"{protocol}_config")):
            return protocol
    return None


def flatten_server(row: ServerTable) -> dict[str, Any]:
    """List item: server columns with country and city inlined."""
    country = row.country
    city = row.city
    return {
        "id": row.id,
        "name": row.name,
        "categories": list(row.categories or []),
        "country_id": row.country_id,
        "country": country.name if country else "",
        "country_code": country.id if country else "",
        "flag": (country.flag or "") if country else "",
        "city_id": row.city_id,
        "city": city.name if city else "",
        "is_pro": row.is_pro,
        "mode": row.mode,
        "ip": row.ip,
        "latitude": city.latitude if city else (row.latitude or 0),
        "longitude": city.longitude if city else (row.longitude or 0),
        "os_type": row.os_type,
        "protocol": detect_protocol(row),
        "created_at": row.created_at.isoformat(),
        "updated_at": row.updated_at.isoformat(),
    }


def server_detail(row: ServerTable) -> dict[str, Any]:
    """Single item: list fields plus every configured protocol config."""
    item = flatten_server(row)
    for protocol in PROTOCOLS:
        config = getattr(row, f"{protocol}_config")
        item[f"{protocol}_config"] = config if is_configured(config) else None
    return item


def _address_conflict(ip: str, os_type: str) -> ConflictError:
    return ConflictError("Server", f"{ip} ({os_type})")


class ServerCascade:
    """Cache keys of the sessions and feedback deleted along with servers.

    Rows must be looked up before the delete that cascades to them. Both
    namespaces are always returned so their generations advance even when
    no cached entry is affected.
    """

    def __init__(self, sessions: ConnectivityRepository, feedback: FeedbackRepository):
        self.sessions = sessions
        self.feedback = feedback

    async def point_keys(self, server_ids: Sequence[str]) -> dict[Namespace, list[str]]:
        ids = [i for i in server_ids if is_uuid(i)]
        sessions: list[tuple[str, str, str]] = []
        feedback_ids: list[str] = []
        if ids:
            sessions = await self.sessions.sessions_where(ConnectivityTable.server_id.in_(ids))
            feedback_ids = await self.feedback.ids_where(FeedbackTable.server_id.in_(ids))
        feedback_keys = CacheKeys(Namespace.FEEDBACK)
        return {
            Namespace.CONNECTIVITY: session_point_keys(sessions),
            Namespace.FEEDBACK: [feedback_keys.by_id(i) for i in feedback_ids],
        }


class ServerService(EntityService[ServerRepository]):
    namespace = Namespace.SERVERS

    def __init__(self, repo: ServerRepository, cascade: ServerCascade, cache: VersionedCache):
        super().__init__(repo, cache)
        self.cascade = cascade

    async def list_servers(
        self, filters: ServerFilter, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        """Servers newest first; mode "test" lists every mode."""
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(filters, page, limit)
            return paginate([flatten_server(row) for row in rows], total, page, limit)

        params = {"view": "list", "filters": filters, "page": page, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace, params, load, related=EMBEDDED
        )

    async def list_grouped_servers(
        self, filters: ServerFilter, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        """Servers grouped by country, paginated over the groups."""
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            groups: dict[str, dict[str, Any]] = {}
            for row in await self.repo.list_all(filters):
                item = flatten_server(row)
                group = groups.setdefault(
                    row.country_id,
                    {
                        "country": item["country"],
                        "country_code": item["country_code"],
                        "flag": item["flag"],
                        "servers": [],
                    },
                )
                group["servers"].append(item)
            grouped = list(groups.values())
            start = (page - 1) * limit
            return paginate(grouped[start : start + limit], len(grouped), page, limit)

        params = {"view": "grouped", "filters": filters, "page": page, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace, params, load, related=EMBEDDED
        )

    async def get_server(self, server_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            row = await self.repo.get(server_id)
            return server_detail(row) if row is not None else None

        return await self.cache.read_through_point(self.keys.by_id(server_id), load)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create_server(self, payload: ServerCreate) -> dict[str, Any]:
        """Create a server; (ip, os_type) must be unused."""
        if await self.repo.address_taken(payload.ip, payload.os_type):
            raise _address_conflict(payload.ip, payload.os_type)
        async with self.writing("Server", f"{payload.ip} ({payload.os_type})"):
            row = await self.repo.add(ServerTable(**payload.model_dump()))
        await self.invalidate()
        return server_detail(row)

    async def update_server(
        self, server_id: str, payload: ServerUpdate
    ) -> dict[str, Any] | None:
        changes = payload.changes()
        if "ip" in changes or "os_type" in changes:
            current = await self.repo.get(server_id)
            if current is None:
                return None
            ip = changes.get("ip") or current.ip
            os_type = changes.get("os_type") or current.os_type
            if await self.repo.address_taken(ip, os_type, exclude_id=server_id):
                raise _address_conflict(ip, os_type)
        return await self._apply(server_id, changes)

    async def set_server_mode(self, server_id: str, mode: ServerMode) -> dict[str, Any] | None:
        return await self._apply(server_id, {"mode": mode})

    async def set_server_is_pro(self, server_id: str, is_pro: bool) -> dict[str, Any] | None:
        return await self._apply(server_id, {"is_pro": is_pro})

    async def update_openvpn_config(
        self, server_id: str, config: OpenVpnConfig
    ) -> dict[str, Any] | None:
        return await self._merge_config(server_id, "openvpn_config", config.changes())

    async def update_wireguard_config(
        self, server_id: str, config: WireguardConfig
    ) -> dict[str, Any] | None:
        return await self._merge_config(server_id, "wireguard_config", config.changes())

    async def update_xray_config(
        self, server_id: str, config: XrayConfig
    ) -> dict[str, Any] | None:
        return await self._merge_config(server_id, "xray_config", config.changes())

    async def delete_server(self, server_id: str) -> bool:
        """Delete a server with its sessions and feedback."""
        async with self.writing("Server", server_id):
            dependents = await self.cascade.point_keys([server_id])
            row = await self.repo.delete(server_id)
        if row is None:
            return False
        await self.invalidate([self.keys.by_id(server_id)])
        await self.invalidate_related(dependents)
        return True

    async def delete_servers(self, server_ids: Sequence[str]) -> bool:
        """Delete several servers at once; False if none existed."""
        ids = list(dict.fromkeys(server_ids))
        async with self.writing("Server", ", ".join(ids)):
            dependents = await self.cascade.point_keys(ids)
            deleted = await self.repo.delete_many(ids)
        if not deleted:
            return False
        await self.invalidate(server_point_keys(i for i in ids if is_uuid(i)))
        await self.invalidate_related(dependents)
        return True

    async def _apply(self, server_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        if not self.repo.valid_id(server_id):
            return None
        async with self.writing("Server", server_id):
            row = await self.repo.update(server_id, changes)
        if row is None:
            return None
        await self.invalidate([self.keys.by_id(server_id)])
        return server_detail(row)

    async def _merge_config(
        self, server_id: str, column: str, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        row = await self.repo.get(server_id)
        if row is None:
            return None
        # JSONB columns are replaced, not mutated in place
        merged = {**(getattr(row, column) or {}), **changes}
        return await self._apply(server_id, {column: merged})


def server_point_keys(server_ids: Iterable[str]) -> list[str]:
    keys = CacheKeys(Namespace.SERVERS)
    return [keys.by_id(server_id) for server_id in server_ids]
