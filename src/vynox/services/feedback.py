"""Feedback submitted by users, optionally about a server."""

from __future__ import annotations

from typing import Any

from vynox.cache import Namespace
from vynox.core.filters import FeedbackFilter
from vynox.core.payloads import FeedbackCreate
from vynox.persistence.repositories import FeedbackRepository
from vynox.persistence.tables import FeedbackTable
from vynox.services.base import EntityService, clamp_page, paginate, shape


class FeedbackService(EntityService[FeedbackRepository]):
    namespace = Namespace.FEEDBACK

    async def list_feedback(
        self, filters: FeedbackFilter, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        """Feedback newest first, optionally within a submission window."""
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(filters, page, limit)
            return paginate([row.to_dict() for row in rows], total, page, limit)

        params = {"filters": filters, "page": page, "limit": limit}
        return await self.cache.read_through_list(self.namespace, params, load)

    async def get_feedback(self, feedback_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get(feedback_id))

        return await self.cache.read_through_point(self.keys.by_id(feedback_id), load)

    async def create_feedback(self, payload: FeedbackCreate) -> dict[str, Any]:
        values = payload.model_dump(exclude_none=True)
        async with self.writing("Feedback", payload.server_id or ""):
            row = await self.repo.add(FeedbackTable(**values))
        await self.invalidate()
        return row.to_dict()

    async def delete_feedback(self, feedback_id: str) -> bool:
        async with self.writing("Feedback", feedback_id):
            row = await self.repo.delete(feedback_id)
        if row is None:
            return False
        await self.invalidate([self.keys.by_id(feedback_id)])
        return True
