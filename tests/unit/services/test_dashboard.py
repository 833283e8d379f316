"""Tests for dashboard statistics."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from tests.unit.services.factories import NOW, server_row, session_row
from vynox.cache import AggregateCache, Namespace, VersionedCache
from vynox.persistence.repositories import StatsRepository
from vynox.persistence.tables import ServerTable
from vynox.services.dashboard import DashboardService


@pytest.fixture
def stats():
    repo = AsyncMock(spec=StatsRepository)
    repo.count.return_value = 3
    repo.servers_by_os.return_value = {"android": 2, "both": 1}
    repo.average_rating.return_value = 4.3333
    repo.top_reasons.return_value = [("slow", 4), ("drops", 1)]

    async def recent(table, order_column, limit):
        if table is ServerTable:
            return [server_row()]
        return []

    repo.recent.side_effect = recent
    return repo


@pytest.fixture
def service(stats, aggregates: AggregateCache) -> DashboardService:
    return DashboardService(stats, aggregates)


class TestDashboard:
    """Test the stats document and its caching."""

    @pytest.mark.asyncio
    async def test_stats_document(self, service: DashboardService) -> None:
        """Counts, rating and reasons land in their sections."""
        result = await service.get_stats()
        assert result["servers"]["by_os"] == {"android": 2, "ios": 0}
        assert result["servers"]["by_mode"] == {"live": 3, "test": 3}
        assert result["connections"]["active"] == 3
        assert result["feedback"]["avg_rating_30d"] == 4.33
        assert result["feedback"]["top_reasons_7d"] == [
            {"reason": "slow", "count": 4},
            {"reason": "drops", "count": 1},
        ]
        assert result["ads"] == {"active": 3, "total": 3}

    @pytest.mark.asyncio
    async def test_no_ratings(self, service: DashboardService, stats) -> None:
        """Without ratings the average is 0."""
        stats.average_rating.return_value = None
        assert (await service.get_stats())["feedback"]["avg_rating_30d"] == 0

    @pytest.mark.asyncio
    async def test_recent_activity_newest_first(self, service: DashboardService, stats) -> None:
        """Activity merges all sources, newest first, up to the limit."""
        earlier = session_row(connected_at=NOW - timedelta(hours=1))
        later = session_row(id="s-later", connected_at=NOW + timedelta(hours=1))

        async def recent(table, order_column, limit):
            if table is ServerTable:
                return [server_row()]
            if order_column.key == "connected_at":
                return [later, earlier]
            return []

        stats.recent.side_effect = recent
        activity = (await service.get_stats(recent_limit=2))["recent_activity"]
        assert [entry["type"] for entry in activity] == ["connectivity", "server"]
        assert activity[0]["ref_id"] == "s-later"
        assert activity[1]["title"] == "New server: de-berlin-1 (Berlin, Germany)"
        assert activity[1]["when"] == NOW.isoformat()

    @pytest.mark.asyncio
    async def test_cached_across_writes(
        self, service: DashboardService, stats, cache: VersionedCache
    ) -> None:
        """Writes do not evict the dashboard before its TTL."""
        await service.get_stats()
        await cache.invalidate_on_write(Namespace.SERVERS)
        await service.get_stats()
        stats.servers_by_os.assert_awaited_once()
