"""Dashboard statistics.

The stats span every namespace, so they live in the TTL-only aggregate
cache and may lag writes by up to its TTL.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from vynox.cache import AggregateCache, Namespace
from vynox.persistence.repositories import StatsRepository
from vynox.persistence.tables import (
    AdTable,
    ConnectivityTable,
    FeedbackTable,
    ServerTable,
)

OS_BUCKETS = ("android", "ios")


def _recent_activity(
    servers: list[ServerTable],
    sessions: list[ConnectivityTable],
    feedback: list[FeedbackTable],
    limit: int,
) -> list[dict[str, Any]]:
    activity: list[tuple[datetime, dict[str, Any]]] = []
    for server in servers:
        place = ", ".join(
            part
            for part in (
                server.city.name if server.city else "",
                server.country.name if server.country else "",
            )
            if part
        )
        activity.append(
            (
                server.created_at,
                {
                    "type": "server",
                    "title": f"New server: {server.name} ({place})",
                    "ref_id": server.id,
                },
            )
        )
    for session in sessions:
        activity.append(
            (
                session.connected_at,
                {
                    "type": "connectivity",
                    "title": f"User connected (server {session.server_id})",
                    "ref_id": session.id,
                },
            )
        )
    for item in feedback:
        activity.append(
            (
                item.submitted_at,
                {
                    "type": "feedback",
                    "title": f"Feedback received: {item.reason}",
                    "ref_id": item.id,
                },
            )
        )
    activity.sort(key=lambda entry: entry[0], reverse=True)
    return [{**entry, "when": when.isoformat()} for when, entry in activity[: max(limit, 1)]]


class DashboardService:
    def __init__(self, stats: StatsRepository, aggregates: AggregateCache):
        self.stats = stats
        self.aggregates = aggregates

    async def get_stats(self, recent_limit: int = 5) -> dict[str, Any]:
        async def load() -> dict[str, Any]:
            return await self._compute(recent_limit)

        return await self.aggregates.read_through(
            Namespace.DASHBOARD, {"view": "stats", "recent_limit": recent_limit}, load
        )

    async def _compute(self, recent_limit: int) -> dict[str, Any]:
        now = datetime.now(UTC)
        last_24h = now - timedelta(days=1)
        last_7d = now - timedelta(days=7)
        last_30d = now - timedelta(days=30)
        stats = self.stats

        by_os = await stats.servers_by_os()
        avg_rating = await stats.average_rating(last_30d)
        return {
            "servers": {
                "total": await stats.count(ServerTable),
                "by_os": {os_type: by_os.get(os_type, 0) for os_type in OS_BUCKETS},
                "by_mode": {
                    "live": await stats.count(ServerTable, ServerTable.mode == "live"),
                    "test": await stats.count(ServerTable, ServerTable.mode == "test"),
                },
                "pro": await stats.count(ServerTable, ServerTable.is_pro.is_(True)),
            },
            "connections": {
                "active": await stats.count(
                    ConnectivityTable, ConnectivityTable.disconnected_at.is_(None)
                ),
                "total": await stats.count(ConnectivityTable),
                "last_24h": await stats.count(
                    ConnectivityTable, ConnectivityTable.connected_at >= last_24h
                ),
            },
            "feedback": {
                "last_7d": await stats.count(FeedbackTable, FeedbackTable.submitted_at >= last_7d),
                "avg_rating_30d": round(avg_rating, 2) if avg_rating is not None else 0,
                "top_reasons_7d": [
                    {"reason": reason, "count": count}
                    for reason, count in await stats.top_reasons(last_7d)
                ],
            },
            "ads": {
                "active": await stats.count(AdTable, AdTable.status.is_(True)),
                "total": await stats.count(AdTable),
            },
            "recent_activity": _recent_activity(
                await stats.recent(ServerTable, ServerTable.created_at, recent_limit),
                await stats.recent(ConnectivityTable, ConnectivityTable.connected_at, recent_limit),
                await stats.recent(FeedbackTable, FeedbackTable.submitted_at, recent_limit),
                recent_limit,
            ),
        }
