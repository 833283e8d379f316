"""Static pages, one per page type."""

from __future__ import annotations

from typing import Any

from vynox.api.errors import ConflictError
from vynox.cache import Namespace
from vynox.core.filters import PageFilter
from vynox.core.payloads import PageCreate, PageUpdate
from vynox.persistence.repositories import PageRepository
from vynox.persistence.tables import PageTable
from vynox.services.base import EntityService, clamp_page, paginate, shape


class PageService(EntityService[PageRepository]):
    """Static content pages, point-cached by id and by type."""

    namespace = Namespace.PAGES

    async def list_pages(
        self, filters: PageFilter, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(filters, page, limit)
            return paginate([row.to_dict() for row in rows], total, page, limit)

        params = {"filters": filters, "page": page, "limit": limit}
        return await self.cache.read_through_list(self.namespace, params, load)

    async def get_page(self, page_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get(page_id))

        return await self.cache.read_through_point(self.keys.by_id(page_id), load)

    async def get_page_by_type(self, type_: str) -> dict[str, Any] | None:
        type_ = type_.strip().lower()

        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get_by_type(type_))

        return await self.cache.read_through_point(self.keys.by_type(type_), load)

    async def create_page(self, payload: PageCreate) -> dict[str, Any]:
        if await self.repo.get_by_type(payload.type) is not None:
            raise ConflictError("Page", payload.type)
        async with self.writing("Page", payload.type):
            row = await self.repo.add(PageTable(**payload.model_dump()))
        await self.invalidate()
        return row.to_dict()

    async def update_page(self, page_id: str, payload: PageUpdate) -> dict[str, Any] | None:
        before = await self.repo.get(page_id)
        if before is None:
            return None
        old_type = before.type
        changes = payload.changes()
        new_type = changes.get("type")
        if new_type and new_type != old_type and await self.repo.get_by_type(new_type):
            raise ConflictError("Page", new_type)
        async with self.writing("Page", new_type or old_type):
            row = await self.repo.update(page_id, changes)
        if row is None:
            return None
        await self.invalidate(
            [self.keys.by_id(page_id), self.keys.by_type(old_type), self.keys.by_type(row.type)]
        )
        return row.to_dict()

    async def delete_page(self, page_id: str) -> bool:
        async with self.writing("Page", page_id):
            row = await self.repo.delete(page_id)
        if row is None:
            return False
        await self.invalidate([self.keys.by_id(page_id), self.keys.by_type(row.type)])
        return True
