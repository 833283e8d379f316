"""Frequently asked questions; slugs are unique and derived from the question."""

from __future__ import annotations

from typing import Any

from vynox.cache import Namespace
from vynox.config import settings
from vynox.core.payloads import FaqCreate, FaqUpdate
from vynox.core.text import next_free_slug, slugify
from vynox.persistence.repositories import FaqRepository
from vynox.persistence.tables import FaqTable
from vynox.services.base import EntityService, clamp_page, paginate, shape

SEARCH_LIMIT = 20


class FaqService(EntityService[FaqRepository]):
    namespace = Namespace.FAQS

    async def list_faqs(self, page: int = 1, limit: int | None = None) -> dict[str, Any]:
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(page, limit)
            return paginate([row.to_dict() for row in rows], total, page, limit)

        params = {"view": "list", "page": page, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace, params, load, ttl=settings.cache_read_mostly_list_ttl
        )

    async def search_faqs(self, q: str, limit: int = SEARCH_LIMIT) -> dict[str, Any]:
        """FAQs whose slug starts with, or question contains, ``q``."""
        slug = slugify(q)

        async def load() -> dict[str, Any]:
            rows = await self.repo.search(slug, q, limit)
            return {"success": True, "data": [row.to_dict() for row in rows]}

        params = {"view": "search", "q": q, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace, params, load, ttl=settings.cache_read_mostly_list_ttl
        )

    async def get_faq(self, faq_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get(faq_id))

        return await self.cache.read_through_point(self.keys.by_id(faq_id), load)

    async def unique_slug(self, question: str, exclude_id: str | None = None) -> str:
        base = slugify(question)
        return next_free_slug(base, await self.repo.slugs_like(base, exclude_id))

    async def create_faq(self, payload: FaqCreate) -> dict[str, Any]:
        slug = await self.unique_slug(payload.question)
        async with self.writing("FAQ", slug):
            row = await self.repo.add(
                FaqTable(question=payload.question, slug=slug, answer=payload.answer)
            )
        await self.invalidate()
        return row.to_dict()

    async def update_faq(self, faq_id: str, payload: FaqUpdate) -> dict[str, Any] | None:
        """Update a FAQ; a new question re-derives the slug."""
        if not self.repo.valid_id(faq_id):
            return None
        changes = payload.changes()
        if changes.get("question"):
            changes["slug"] = await self.unique_slug(changes["question"], exclude_id=faq_id)
        async with self.writing("FAQ", changes.get("slug", faq_id)):
            row = await self.repo.update(faq_id, changes)
        if row is None:
            return None
        await self.invalidate([self.keys.by_id(faq_id)])
        return row.to_dict()

    async def delete_faq(self, faq_id: str) -> bool:
        async with self.writing("FAQ", faq_id):
            row = await self.repo.delete(faq_id)
        if row is None:
            return False
        await self.invalidate([self.keys.by_id(faq_id)])
        return True
