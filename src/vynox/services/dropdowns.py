"""Dropdowns: named lists of ``{"name", "value"}`` options.

Dropdowns are point-cached by id and by name; every write drops both
name keys (before and after) since a rename moves the entry.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from vynox.api.errors import ConflictError
from vynox.cache import Namespace
from vynox.core.filters import DropdownFilter
from vynox.core.payloads import DropdownCreate, DropdownUpdate, DropdownValue, DropdownValuePatch
from vynox.persistence.repositories import DropdownRepository
from vynox.persistence.tables import DropdownTable
from vynox.services.base import EntityService, clamp_page, paginate, shape


def _duplicate_value(value: str) -> ConflictError:
    return ConflictError("Dropdown value", value)


class DropdownService(EntityService[DropdownRepository]):
    namespace = Namespace.DROPDOWNS

    async def list_dropdowns(
        self, filters: DropdownFilter, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(filters, page, limit)
            return paginate([row.to_dict() for row in rows], total, page, limit)

        params = {"filters": filters, "page": page, "limit": limit}
        return await self.cache.read_through_list(self.namespace, params, load)

    async def get_dropdown(self, dropdown_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get(dropdown_id))

        return await self.cache.read_through_point(self.keys.by_id(dropdown_id), load)

    async def get_dropdown_by_name(self, name: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            return shape(await self.repo.get_by_name(name))

        return await self.cache.read_through_point(self.keys.by_name(name), load)

    async def create_dropdown(self, payload: DropdownCreate) -> dict[str, Any]:
        values = [v.model_dump() for v in payload.values]
        seen: set[str] = set()
        for item in values:
            if item["value"] in seen:
                raise _duplicate_value(item["value"])
            seen.add(item["value"])
        async with self.writing("Dropdown", payload.name):
            row = await self.repo.add(DropdownTable(name=payload.name, values=values))
        await self.invalidate()
        return row.to_dict()

    async def update_dropdown(
        self, dropdown_id: str, payload: DropdownUpdate
    ) -> dict[str, Any] | None:
        changes = payload.changes()
        if "values" in changes:
            values = [v.model_dump() for v in payload.values or []]
            if len({v["value"] for v in values}) != len(values):
                raise ConflictError("Dropdown value", "duplicate")
            changes["values"] = values
        return await self._write(dropdown_id, lambda row: changes)

    async def add_value(self, dropdown_id: str, value: DropdownValue) -> dict[str, Any] | None:
        """Append an option; its value must be new within the dropdown."""

        def apply(row: DropdownTable) -> dict[str, Any]:
            if any(v["value"] == value.value for v in row.values):
                raise _duplicate_value(value.value)
            return {"values": [*row.values, value.model_dump()]}

        return await self._write(dropdown_id, apply)

    async def update_value(
        self, dropdown_id: str, old_value: str, patch: DropdownValuePatch
    ) -> dict[str, Any] | None:
        """Rename or re-value an option; None if the option is missing."""
        row = await self.repo.get(dropdown_id)
        if row is None or not any(v["value"] == old_value for v in row.values):
            return None

        def apply(row: DropdownTable) -> dict[str, Any]:
            if (
                patch.new_value
                and patch.new_value != old_value
                and any(v["value"] == patch.new_value for v in row.values)
            ):
                raise _duplicate_value(patch.new_value)
            values = []
            for item in row.values:
                if item["value"] == old_value:
                    item = {
                        "name": patch.new_name if patch.new_name is not None else item["name"],
                        "value": patch.new_value or item["value"],
                    }
                values.append(item)
            return {"values": values}

        return await self._write(dropdown_id, apply)

    async def remove_value(self, dropdown_id: str, value: str) -> dict[str, Any] | None:
        """Remove an option; None if the dropdown or option is missing."""
        row = await self.repo.get(dropdown_id)
        if row is None or not any(v["value"] == value for v in row.values):
            return None
        return await self._write(
            dropdown_id, lambda row: {"values": [v for v in row.values if v["value"] != value]}
        )

    async def delete_dropdown(self, dropdown_id: str) -> bool:
        async with self.writing("Dropdown", dropdown_id):
            row = await self.repo.delete(dropdown_id)
        if row is None:
            return False
        await self.invalidate([self.keys.by_id(dropdown_id), self.keys.by_name(row.name)])
        return True

    async def _write(
        self, dropdown_id: str, build: Callable[[DropdownTable], dict[str, Any]]
    ) -> dict[str, Any] | None:
        """Apply ``build(row)`` as changes and drop id and both name keys."""
        before = await self.repo.get(dropdown_id)
        if before is None:
            return None
        old_name = before.name
        changes = build(before)
        async with self.writing("Dropdown", changes.get("name", old_name)):
            row = await self.repo.update(dropdown_id, changes)
        if row is None:
            return None
        await self.invalidate(
            [self.keys.by_id(dropdown_id), self.keys.by_name(old_name), self.keys.by_name(row.name)]
        )
        return row.to_dict()
