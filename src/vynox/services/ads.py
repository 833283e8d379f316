"""In-app advertisements per platform."""

from __future__ import annotations

from typing import Any

from vynox.api.errors import ConflictError
from vynox.cache import Namespace
from vynox.core.filters import AdFilter
from vynox.core.payloads import AdCreate, AdUpdate
from vynox.persistence.repositories import AdRepository
from vynox.persistence.tables import AdTable
from vynox.services.base import EntityService, clamp_page, paginate, shape


class AdService(EntityService[AdRepository]):
    namespace = Namespace.ADS

    async def list_ads(
        self, filters: AdFilter, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(filters, page, limit)
            return paginate([row.to_dict() for row in rows], total, page, limit)

        params = {"filters": filters, "page": page, "limit": limit}
        return await self.cache.read_through_list(self.namespace, params, load)

    async def get_ad(self, ad_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get(ad_id))

        return await self.cache.read_through_point(self.keys.by_id(ad_id), load)

    async def create_ad(self, payload: AdCreate) -> dict[str, Any]:
        """Create an ad; a non-empty ``ad_id`` must be unused."""
        if payload.ad_id and await self.repo.exists(AdTable.ad_id == payload.ad_id):
            raise ConflictError("Ad", payload.ad_id)
        async with self.writing("Ad", payload.ad_id or ""):
            row = await self.repo.add(AdTable(**payload.model_dump()))
        await self.invalidate()
        return row.to_dict()

    async def update_ad(self, ad_id: str, payload: AdUpdate) -> dict[str, Any] | None:
        if not self.repo.valid_id(ad_id):
            return None
        changes = payload.changes()
        if changes.get("ad_id") and await self.repo.exists(
            AdTable.ad_id == changes["ad_id"], AdTable.id != ad_id
        ):
            raise ConflictError("Ad", changes["ad_id"])
        async with self.writing("Ad", changes.get("ad_id") or ad_id):
            row = await self.repo.update(ad_id, changes)
        if row is None:
            return None
        await self.invalidate([self.keys.by_id(ad_id)])
        return row.to_dict()

    async def set_ad_status(self, ad_id: str, status: bool) -> dict[str, Any] | None:
        return await self.update_ad(ad_id, AdUpdate(status=status))

    async def delete_ad(self, ad_id: str) -> bool:
        async with self.writing("Ad", ad_id):
            row = await self.repo.delete(ad_id)
        if row is None:
            return False
        await self.invalidate([self.keys.by_id(ad_id)])
        return True
