"""Tests for feedback reads and writes."""

import pytest

from tests.unit.services.factories import FEEDBACK_ID, feedback_row, integrity_error, make_repo
from vynox.api.errors import ConflictError
from vynox.cache import CacheKeys, Namespace, VersionedCache
from vynox.core.filters import FeedbackFilter
from vynox.core.payloads import FeedbackCreate
from vynox.persistence.repositories import FeedbackRepository
from vynox.persistence.tables import FeedbackTable
from vynox.services.feedback import FeedbackService

KEYS = CacheKeys(Namespace.FEEDBACK)


@pytest.fixture
def repo():
    return make_repo(FeedbackRepository)


@pytest.fixture
def service(repo, cache: VersionedCache) -> FeedbackService:
    return FeedbackService(repo, cache)


class TestFeedbackReads:
    """Test cached feedback reads."""

    @pytest.mark.asyncio
    async def test_get_is_cached(self, service: FeedbackService, repo) -> None:
        """A single feedback row is loaded once."""
        repo.get.return_value = feedback_row()
        first = await service.get_feedback(FEEDBACK_ID)
        second = await service.get_feedback(FEEDBACK_ID)
        assert first == second
        assert first["rating"] == 2
        repo.get.assert_awaited_once_with(FEEDBACK_ID)

    @pytest.mark.asyncio
    async def test_filters_are_part_of_the_key(self, service: FeedbackService, repo) -> None:
        """Different filters never share a cached page."""
        repo.list_page.return_value = ([feedback_row()], 1)
        await service.list_feedback(FeedbackFilter(os_type="ios"))
        await service.list_feedback(FeedbackFilter(os_type="android"))
        await service.list_feedback(FeedbackFilter(os_type="ios"))
        assert repo.list_page.await_count == 2


class TestFeedbackWrites:
    """Test feedback creation and deletion against the cache."""

    @pytest.mark.asyncio
    async def test_create_omits_unset_fields(self, service: FeedbackService, repo) -> None:
        """Unset optional fields fall back to column defaults."""
        repo.add.side_effect = lambda row: row

        await service.create_feedback(
            FeedbackCreate(reason="slow", review="laggy", os_type="ios", rating=2)
        )

        row = repo.add.await_args.args[0]
        assert isinstance(row, FeedbackTable)
        assert row.rating == 2
        assert row.submitted_at is None

    @pytest.mark.asyncio
    async def test_unknown_server_conflicts(self, service: FeedbackService, repo) -> None:
        """A foreign key violation at commit surfaces as a conflict."""
        repo.commit.side_effect = integrity_error()

        with pytest.raises(ConflictError):
            await service.create_feedback(
                FeedbackCreate(reason="slow", review="x", os_type="ios", server_id="gone")
            )
        repo.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_then_list(
        self, service: FeedbackService, repo, cache: VersionedCache
    ) -> None:
        """New feedback shows up in a previously cached list."""
        repo.list_page.return_value = ([], 0)
        await service.list_feedback(FeedbackFilter(os_type="ios"))

        repo.add.side_effect = lambda row: row
        created = await service.create_feedback(
            FeedbackCreate(reason="slow", review="x", os_type="ios")
        )
        assert created["reason"] == "slow"
        assert await cache.current_generation(Namespace.FEEDBACK) == "2"

        await service.list_feedback(FeedbackFilter(os_type="ios"))
        assert repo.list_page.await_count == 2

    @pytest.mark.asyncio
    async def test_delete_drops_entry(
        self, service: FeedbackService, repo, cache: VersionedCache
    ) -> None:
        """A deleted row is no longer served from cache."""
        repo.get.return_value = feedback_row()
        assert await service.get_feedback(FEEDBACK_ID) is not None
        await cache.current_generation(Namespace.FEEDBACK)
        repo.delete.return_value = feedback_row()

        assert await service.delete_feedback(FEEDBACK_ID) is True

        assert await cache.kv.get(KEYS.by_id(FEEDBACK_ID)) is None
        assert await cache.current_generation(Namespace.FEEDBACK) == "2"
        repo.get.return_value = None
        assert await service.get_feedback(FEEDBACK_ID) is None

    @pytest.mark.asyncio
    async def test_delete_missing(
        self, service: FeedbackService, repo, cache: VersionedCache
    ) -> None:
        """Deleting an unknown row reports False and bumps nothing."""
        await cache.current_generation(Namespace.FEEDBACK)
        repo.delete.return_value = None

        assert await service.delete_feedback(FEEDBACK_ID) is False
        assert await cache.current_generation(Namespace.FEEDBACK) == "1"
