"""Repository pattern for the VPN directory.

Repositories own every SQL statement: filtering, sorting, offset/limit
pagination, counts and by-key lookups. They flush but never commit;
services commit explicitly so cache invalidation can run strictly after
the write is durable.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, ClassVar, Generic, TypeVar
from uuid import UUID

from sqlalchemy import Select, case, delete, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from vynox.core.filters import (
    AdFilter,
    CityFilter,
    DropdownFilter,
    FeedbackFilter,
    PageFilter,
    ServerFilter,
)
from vynox.persistence.tables import (
    AdTable,
    Base,
    CityTable,
    ConnectivityTable,
    CountryTable,
    DropdownTable,
    FaqTable,
    FeedbackTable,
    PageTable,
    ServerTable,
)

TableT = TypeVar("TableT", bound=Base)

# JSONPath matching any non-empty value of a config object
_NON_EMPTY_VALUE = '$.* ? (@ != null && @ != "")'


def is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except (TypeError, ValueError):
        return False
    return True


class BaseRepository(Generic[TableT]):
    """Base repository with common CRUD operations."""

    table: ClassVar[type[Base]]
    # Primary keys are UUIDs; malformed ids are treated as not found
    uuid_keys: ClassVar[bool] = True

    def __init__(self, session: AsyncSession):
        self.session = session

    def valid_id(self, entity_id: str) -> bool:
        return not self.uuid_keys or is_uuid(entity_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, entity_id: str) -> TableT | None:
        if not self.valid_id(entity_id):
            return None
        return await self.session.get(self.table, entity_id)  # type: ignore[return-value]

    async def find_one(self, *where: ColumnElement[bool]) -> TableT | None:
        result = await self.session.execute(select(self.table).where(*where).limit(1))
        return result.scalar_one_or_none()  # type: ignore[return-value]

    async def exists(self, *where: ColumnElement[bool]) -> bool:
        stmt = select(literal(1)).select_from(self.table).where(*where).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def ids_where(self, *where: ColumnElement[bool]) -> list[str]:
        """Primary keys of the matching rows."""
        stmt = select(self.table.id).where(*where)  # type: ignore[attr-defined]
        result = await self.session.execute(stmt)
        return [str(row_id) for row_id in result.scalars().all()]

    async def count(self, *where: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.table).where(*where)
        return int((await self.session.execute(stmt)).scalar_one())

    async def find_all(
        self,
        where: Sequence[ColumnElement[bool]] = (),
        order_by: Sequence[Any] = (),
        limit: int | None = None,
    ) -> list[TableT]:
        stmt = select(self.table).where(*where).order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())  # type: ignore[arg-type]

    async def find_page(
        self,
        where: Sequence[ColumnElement[bool]],
        order_by: Sequence[Any],
        page: int,
        limit: int,
    ) -> tuple[list[TableT], int]:
        """One page of rows plus the total number of matching rows."""
        total = await self.count(*where)
        stmt = (
            select(self.table)
            .where(*where)
            .order_by(*order_by)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total  # type: ignore[arg-type]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add(self, row: TableT) -> TableT:
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def update(self, entity_id: str, values: Mapping[str, Any]) -> TableT | None:
        """Apply column values and return the updated row, or None if missing."""
        row = await self.get(entity_id)
        if row is None:
            return None
        for key, value in values.items():
            setattr(row, key, value)
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def delete(self, entity_id: str) -> TableT | None:
        """Delete by id and return the removed row, or None if missing."""
        row = await self.get(entity_id)
        if row is None:
            return None
        await self.session.delete(row)
        await self.session.flush()
        return row

    async def delete_where(self, *where: ColumnElement[bool]) -> int:
        result = await self.session.execute(delete(self.table).where(*where))
        await self.session.flush()
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


class AdRepository(BaseRepository[AdTable]):
    table = AdTable

    async def list_page(
        self, filters: AdFilter, page: int, limit: int
    ) -> tuple[list[AdTable], int]:
        where: list[ColumnElement[bool]] = []
        if filters.os_type:
            where.append(AdTable.os_type == filters.os_type)
        if filters.type:
            where.append(AdTable.type == filters.type)
        if filters.position:
            where.append(AdTable.position == filters.position)
        if filters.status is not None:
            where.append(AdTable.status == filters.status)
        return await self.find_page(
            where, [AdTable.position.asc(), AdTable.created_at.desc()], page, limit
        )


class CountryRepository(BaseRepository[CountryTable]):
    table = CountryTable
    uuid_keys = False

    async def list_page(self, page: int, limit: int) -> tuple[list[CountryTable], int]:
        return await self.find_page([], [CountryTable.slug.asc()], page, limit)

    async def search(self, slug: str, q: str, limit: int) -> list[CountryTable]:
        match = or_(
            CountryTable.slug.startswith(slug, autoescape=True),
            CountryTable.name.istartswith(q, autoescape=True),
            CountryTable.id.istartswith(q, autoescape=True),
        )
        return await self.find_all([match], [CountryTable.slug.asc()], limit)


class CityRepository(BaseRepository[CityTable]):
    table = CityTable

    @staticmethod
    def _where(filters: CityFilter) -> list[ColumnElement[bool]]:
        where: list[ColumnElement[bool]] = []
        if filters.country:
            where.append(CityTable.country_id == filters.country.upper())
        if filters.state:
            where.append(CityTable.state == filters.state.upper())
        return where

    _order = (CityTable.country_id.asc(), CityTable.state.asc(), CityTable.slug.asc())

    async def list_page(
        self, filters: CityFilter, page: int, limit: int
    ) -> tuple[list[CityTable], int]:
        return await self.find_page(self._where(filters), self._order, page, limit)

    async def search(
        self, slug: str, q: str, filters: CityFilter, limit: int
    ) -> list[CityTable]:
        match = or_(
            CityTable.slug.startswith(slug, autoescape=True),
            CityTable.name.istartswith(q, autoescape=True),
        )
        return await self.find_all([*self._where(filters), match], self._order, limit)


def protocol_expr() -> ColumnElement[str]:
    """SQL expression naming the first configured protocol of a server."""

    def configured(column: Any) -> ColumnElement[bool]:
        return func.coalesce(func.jsonb_path_exists(column, _NON_EMPTY_VALUE), False)

    return case(
        (configured(ServerTable.openvpn_config), "openvpn"),
        (configured(ServerTable.wireguard_config), "wireguard"),
        (configured(ServerTable.xray_config), "xray"),
        else_=None,
    )


class ServerRepository(BaseRepository[ServerTable]):
    table = ServerTable

    def _filtered(self, filters: ServerFilter) -> Select[Any]:
        stmt = (
            select(ServerTable)
            .join(CountryTable, ServerTable.country_id == CountryTable.id)
            .join(CityTable, ServerTable.city_id == CityTable.id)
        )
        if filters.os_type:
            stmt = stmt.where(ServerTable.os_type == filters.os_type)
        if filters.mode and filters.mode != "test":
            stmt = stmt.where(ServerTable.mode == filters.mode)
        if filters.search:
            term = filters.search
            stmt = stmt.where(
                or_(
                    ServerTable.name.icontains(term, autoescape=True),
                    CityTable.name.icontains(term, autoescape=True),
                    CountryTable.name.icontains(term, autoescape=True),
                    ServerTable.ip.icontains(term, autoescape=True),
                )
            )
        if filters.protocol:
            stmt = stmt.where(protocol_expr() == filters.protocol)
        return stmt

    async def list_page(
        self, filters: ServerFilter, page: int, limit: int
    ) -> tuple[list[ServerTable], int]:
        stmt = self._filtered(filters)
        total_stmt = select(func.count()).select_from(stmt.subquery())
        total = int((await self.session.execute(total_stmt)).scalar_one())
        result = await self.session.execute(
            stmt.order_by(ServerTable.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_all(self, filters: ServerFilter) -> list[ServerTable]:
        result = await self.session.execute(
            self._filtered(filters).order_by(ServerTable.created_at.desc())
        )
        return list(result.scalars().all())

    async def address_taken(self, ip: str, os_type: str, exclude_id: str | None = None) -> bool:
        where = [ServerTable.ip == ip, ServerTable.os_type == os_type]
        if exclude_id is not None:
            where.append(ServerTable.id != exclude_id)
        return await self.exists(*where)

    async def delete_many(self, ids: Sequence[str]) -> int:
        valid = [i for i in ids if is_uuid(i)]
        if not valid:
            return 0
        return await self.delete_where(ServerTable.id.in_(valid))


class FaqRepository(BaseRepository[FaqTable]):
    table = FaqTable

    async def list_page(self, page: int, limit: int) -> tuple[list[FaqTable], int]:
        return await self.find_page(
            [], [FaqTable.created_at.desc(), FaqTable.id.desc()], page, limit
        )

    async def search(self, slug: str, q: str, limit: int) -> list[FaqTable]:
        match = or_(
            FaqTable.slug.startswith(slug, autoescape=True),
            FaqTable.question.icontains(q, autoescape=True),
        )
        return await self.find_all([match], [FaqTable.created_at.desc()], limit)

    async def slugs_like(self, base: str, exclude_id: str | None = None) -> list[str]:
        """Slugs equal to ``base`` or starting with ``base-``."""
        where: list[ColumnElement[bool]] = [
            or_(FaqTable.slug == base, FaqTable.slug.startswith(f"{base}-", autoescape=True))
        ]
        if exclude_id is not None and is_uuid(exclude_id):
            where.append(FaqTable.id != exclude_id)
        result = await self.session.execute(select(FaqTable.slug).where(*where))
        return list(result.scalars().all())


class FeedbackRepository(BaseRepository[FeedbackTable]):
    table = FeedbackTable

    async def list_page(
        self, filters: FeedbackFilter, page: int, limit: int
    ) -> tuple[list[FeedbackTable], int]:
        where: list[ColumnElement[bool]] = []
        if filters.server_id:
            where.append(FeedbackTable.server_id == filters.server_id)
        if filters.reason:
            where.append(FeedbackTable.reason == filters.reason)
        if filters.os_type:
            where.append(FeedbackTable.os_type == filters.os_type)
        if filters.rating:
            where.append(FeedbackTable.rating == filters.rating)
        if filters.date_from:
            where.append(FeedbackTable.submitted_at >= filters.date_from)
        if filters.date_to:
            where.append(FeedbackTable.submitted_at <= filters.date_to)
        return await self.find_page(
            where,
            [FeedbackTable.submitted_at.desc(), FeedbackTable.created_at.desc()],
            page,
            limit,
        )


def _is_open() -> ColumnElement[bool]:
    return ConnectivityTable.disconnected_at.is_(None)


class ConnectivityRepository(BaseRepository[ConnectivityTable]):
    table = ConnectivityTable

    async def find_open(self, user_id: str, server_id: str) -> ConnectivityTable | None:
        return await self.find_one(
            ConnectivityTable.user_id == user_id,
            ConnectivityTable.server_id == server_id,
            _is_open(),
        )

    async def sessions_where(self, *where: ColumnElement[bool]) -> list[tuple[str, str, str]]:
        """(id, user_id, server_id) of the matching sessions."""
        stmt = select(
            ConnectivityTable.id, ConnectivityTable.user_id, ConnectivityTable.server_id
        ).where(*where)
        result = await self.session.execute(stmt)
        return [(str(i), user_id, str(server_id)) for i, user_id, server_id in result.all()]

    async def close_open(
        self, user_id: str, server_id: str, now: datetime
    ) -> ConnectivityTable | None:
        """Close the open session of a pair; None if there is none."""
        row = await self.find_one(
            ConnectivityTable.user_id == user_id,
            ConnectivityTable.server_id == server_id,
            _is_open(),
            ConnectivityTable.connected_at <= now,
        )
        if row is None:
            return None
        row.disconnected_at = now
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def server_stats_page(
        self,
        page: int,
        limit: int,
        os_type: str | None = None,
        search: str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Servers with their total and active session counts, by name."""
        sessions = (
            select(
                ConnectivityTable.server_id.label("server_id"),
                func.count().label("total"),
                func.sum(case((_is_open(), 1), else_=0)).label("active"),
            )
            .group_by(ConnectivityTable.server_id)
            .subquery()
        )
        stmt = (
            select(
                ServerTable.id,
                ServerTable.name,
                ServerTable.os_type,
                CountryTable.name.label("country"),
                CityTable.name.label("city"),
                func.coalesce(sessions.c.total, 0).label("total"),
                func.coalesce(sessions.c.active, 0).label("active"),
            )
            .join(CountryTable, ServerTable.country_id == CountryTable.id)
            .join(CityTable, ServerTable.city_id == CityTable.id)
            .outerjoin(sessions, sessions.c.server_id == ServerTable.id)
        )
        if os_type:
            stmt = stmt.where(ServerTable.os_type == os_type)
        if search:
            stmt = stmt.where(
                or_(
                    ServerTable.name.icontains(search, autoescape=True),
                    CityTable.name.icontains(search, autoescape=True),
                    CountryTable.name.icontains(search, autoescape=True),
                )
            )

        total_stmt = select(func.count()).select_from(stmt.subquery())
        total = int((await self.session.execute(total_stmt)).scalar_one())
        result = await self.session.execute(
            stmt.order_by(ServerTable.name.asc()).offset((page - 1) * limit).limit(limit)
        )
        return [dict(row._mapping) for row in result.all()], total


class DropdownRepository(BaseRepository[DropdownTable]):
    table = DropdownTable

    async def list_page(
        self, filters: DropdownFilter, page: int, limit: int
    ) -> tuple[list[DropdownTable], int]:
        where = [DropdownTable.name == filters.name] if filters.name else []
        return await self.find_page(
            where, [DropdownTable.name.asc(), DropdownTable.created_at.desc()], page, limit
        )

    async def get_by_name(self, name: str) -> DropdownTable | None:
        return await self.find_one(DropdownTable.name == name)


class PageRepository(BaseRepository[PageTable]):
    table = PageTable

    async def list_page(
        self, filters: PageFilter, page: int, limit: int
    ) -> tuple[list[PageTable], int]:
        where: list[ColumnElement[bool]] = []
        if filters.type:
            where.append(PageTable.type == filters.type)
        if filters.title:
            where.append(PageTable.title.icontains(filters.title, autoescape=True))
        if filters.q:
            where.append(
                or_(
                    PageTable.type.icontains(filters.q, autoescape=True),
                    PageTable.title.icontains(filters.q, autoescape=True),
                    PageTable.description.icontains(filters.q, autoescape=True),
                )
            )
        return await self.find_page(
            where, [PageTable.created_at.desc(), PageTable.type.asc()], page, limit
        )

    async def get_by_type(self, type_: str) -> PageTable | None:
        return await self.find_one(PageTable.type == type_)


class StatsRepository:
    """Cross-table counts and recent rows for the dashboard."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _scalar(self, stmt: Any) -> Any:
        return (await self.session.execute(stmt)).scalar_one()

    async def count(self, table: type[Base], *where: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(table).where(*where)
        return int(await self._scalar(stmt))

    async def servers_by_os(self) -> dict[str, int]:
        stmt = select(ServerTable.os_type, func.count()).group_by(ServerTable.os_type)
        result = await self.session.execute(stmt)
        return {str(os_type): int(n) for os_type, n in result.all()}

    async def average_rating(self, since: datetime) -> float | None:
        stmt = select(func.avg(FeedbackTable.rating)).where(FeedbackTable.submitted_at >= since)
        value = await self._scalar(stmt)
        return float(value) if value is not None else None

    async def top_reasons(self, since: datetime, limit: int = 3) -> list[tuple[str, int]]:
        count = func.count().label("n")
        stmt = (
            select(FeedbackTable.reason, count)
            .where(FeedbackTable.submitted_at >= since)
            .group_by(FeedbackTable.reason)
            .order_by(count.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(str(reason), int(n)) for reason, n in result.all()]

    async def recent(self, table: type[Base], order_column: Any, limit: int) -> list[Any]:
        stmt = select(table).order_by(order_column.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
