"""Country and city services.

Cities embed their country and servers embed both, so country writes
reach into the city and server namespaces and city writes into the
server namespace.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from vynox.cache import CacheKeys, Namespace, VersionedCache
from vynox.config import settings
from vynox.core.filters import CityFilter
from vynox.core.payloads import CityCreate, CityUpdate, CountryCreate, CountryUpdate
from vynox.core.text import slugify
from vynox.persistence.repositories import CityRepository, CountryRepository, ServerRepository
from vynox.persistence.tables import CityTable, CountryTable, ServerTable
from vynox.services.base import EntityService, clamp_page, paginate
from vynox.services.servers import ServerCascade, server_point_keys

SEARCH_LIMIT = 20


def city_item(row: CityTable) -> dict[str, Any]:
    item = row.to_dict()
    item["country"] = row.country.to_dict() if row.country is not None else None
    return item


def city_point_keys(city_ids: Iterable[str]) -> list[str]:
    keys = CacheKeys(Namespace.CITIES)
    return [keys.by_id(city_id) for city_id in city_ids]


class CountryService(EntityService[CountryRepository]):
    namespace = Namespace.COUNTRIES

    def __init__(
        self,
        repo: CountryRepository,
        cities: CityRepository,
        servers: ServerRepository,
        cascade: ServerCascade,
        cache: VersionedCache,
    ):
        super().__init__(repo, cache)
        self.cities = cities
        self.servers = servers
        self.cascade = cascade

    async def list_countries(self, page: int = 1, limit: int | None = None) -> dict[str, Any]:
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(page, limit)
            return paginate([row.to_dict() for row in rows], total, page, limit)

        params = {"view": "list", "page": page, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace, params, load, ttl=settings.cache_read_mostly_list_ttl
        )

    async def search_countries(self, q: str, limit: int = SEARCH_LIMIT) -> dict[str, Any]:
        """Countries whose slug, name or code starts with ``q``."""
        slug = slugify(q)

        async def load() -> dict[str, Any]:
            rows = await self.repo.search(slug, q, limit)
            return {"success": True, "data": [row.to_dict() for row in rows]}

        params = {"view": "search", "q": q, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace, params, load, ttl=settings.cache_read_mostly_list_ttl
        )

    async def create_country(self, payload: CountryCreate) -> dict[str, Any]:
        code = payload.country_code.upper()
        row = CountryTable(
            id=code,
            name=payload.name,
            slug=payload.slug or slugify(payload.name),
            flag=payload.flag,
            country_code=code,
        )
        async with self.writing("Country", code):
            row = await self.repo.add(row)
        await self.invalidate()
        return row.to_dict()

    async def update_country(
        self, country_id: str, payload: CountryUpdate
    ) -> dict[str, Any] | None:
        """Update a country; its cities and servers re-embed the new values."""
        country_id = country_id.upper()
        async with self.writing("Country", country_id):
            row = await self.repo.update(country_id, payload.changes())
            related = await self._embedding_keys(country_id) if row is not None else {}
        if row is None:
            return None
        await self.invalidate()
        await self.invalidate_related(related)
        return row.to_dict()

    async def delete_country(self, country_id: str) -> bool:
        """Delete a country with its cities, servers and their dependents."""
        country_id = country_id.upper()
        async with self.writing("Country", country_id):
            related = await self._embedding_keys(country_id, deleting=True)
            row = await self.repo.delete(country_id)
        if row is None:
            return False
        await self.invalidate()
        await self.invalidate_related(related)
        return True

    async def _embedding_keys(
        self, country_id: str, deleting: bool = False
    ) -> dict[Namespace, list[str]]:
        """Point keys of the cities and servers embedding a country.

        A delete also takes the sessions and feedback of those servers.
        """
        city_ids = await self.cities.ids_where(CityTable.country_id == country_id)
        server_ids = await self.servers.ids_where(ServerTable.country_id == country_id)
        keys = {
            Namespace.CITIES: city_point_keys(city_ids),
            Namespace.SERVERS: server_point_keys(server_ids),
        }
        if deleting:
            keys.update(await self.cascade.point_keys(server_ids))
        return keys


class CityService(EntityService[CityRepository]):
    namespace = Namespace.CITIES

    def __init__(
        self,
        repo: CityRepository,
        servers: ServerRepository,
        cascade: ServerCascade,
        cache: VersionedCache,
    ):
        super().__init__(repo, cache)
        self.servers = servers
        self.cascade = cascade

    async def get_city(self, city_id: str) -> dict[str, Any] | None:
        async def load() -> dict[str, Any] | None:
            row = await self.repo.get(city_id)
            return city_item(row) if row is not None else None

        return await self.cache.read_through_point(self.keys.by_id(city_id), load)

    async def list_cities(
        self, filters: CityFilter, page: int = 1, limit: int | None = None
    ) -> dict[str, Any]:
        page, limit = clamp_page(page, limit)

        async def load() -> dict[str, Any]:
            rows, total = await self.repo.list_page(filters, page, limit)
            return paginate([city_item(row) for row in rows], total, page, limit)

        params = {"view": "list", "filters": filters, "page": page, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace,
            params,
            load,
            ttl=settings.cache_read_mostly_list_ttl,
            related=[Namespace.COUNTRIES],
        )

    async def search_cities(
        self, q: str, filters: CityFilter, limit: int = SEARCH_LIMIT
    ) -> dict[str, Any]:
        slug = slugify(q)

        async def load() -> dict[str, Any]:
            rows = await self.repo.search(slug, q, filters, limit)
            return {"success": True, "data": [city_item(row) for row in rows]}

        params = {"view": "search", "q": q, "filters": filters, "limit": limit}
        return await self.cache.read_through_list(
            self.namespace,
            params,
            load,
            ttl=settings.cache_read_mostly_list_ttl,
            related=[Namespace.COUNTRIES],
        )

    async def create_city(self, payload: CityCreate) -> dict[str, Any]:
        row = CityTable(
            name=payload.name,
            slug=payload.slug or slugify(payload.name),
            state=payload.state.upper(),
            country_id=payload.country.upper(),
            latitude=payload.latitude,
            longitude=payload.longitude,
        )
        async with self.writing("City", f"{row.country_id}/{row.slug}"):
            row = await self.repo.add(row)
        await self.invalidate()
        return city_item(row)

    async def update_city(self, city_id: str, payload: CityUpdate) -> dict[str, Any] | None:
        """Update a city; servers embedding it drop their cached entries."""
        if not self.repo.valid_id(city_id):
            return None
        changes = payload.changes()
        if "country" in changes:
            changes["country_id"] = changes.pop("country").upper()
        if changes.get("state"):
            changes["state"] = changes["state"].upper()
        async with self.writing("City", city_id):
            row = await self.repo.update(city_id, changes)
            server_ids = (
                await self.servers.ids_where(ServerTable.city_id == city_id)
                if row is not None
                else []
            )
        if row is None:
            return None
        await self.invalidate([self.keys.by_id(city_id)])
        await self.invalidate_related({Namespace.SERVERS: server_point_keys(server_ids)})
        return city_item(row)

    async def delete_city(self, city_id: str) -> bool:
        """Delete a city with its servers and their sessions and feedback."""
        async with self.writing("City", city_id):
            server_ids = (
                await self.servers.ids_where(ServerTable.city_id == city_id)
                if self.repo.valid_id(city_id)
                else []
            )
            dependents = await self.cascade.point_keys(server_ids)
            row = await self.repo.delete(city_id)
        if row is None:
            return False
        await self.invalidate([self.keys.by_id(city_id)])
        await self.invalidate_related(
            {Namespace.SERVERS: server_point_keys(server_ids), **dependents}
        )
        return True
