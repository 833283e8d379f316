"""FastAPI dependency providers.

Each request gets its own ``AsyncSession``; the Redis client is shared by
the process. Routers obtain ready-to-use services:

    @router.get("/ads")
    async def list_ads(service: Annotated[AdService, Depends(get_ad_service)]):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vynox.cache import AggregateCache, KeyValueCache, VersionedCache, get_redis
from vynox.persistence.db import get_session
from vynox.persistence.repositories import (
    AdRepository,
    CityRepository,
    ConnectivityRepository,
    CountryRepository,
    DropdownRepository,
    FaqRepository,
    FeedbackRepository,
    PageRepository,
    ServerRepository,
    StatsRepository,
)
from vynox.services import (
    AdService,
    CityService,
    ConnectivityService,
    CountryService,
    DashboardService,
    DropdownService,
    FaqService,
    FeedbackService,
    PageService,
    ServerCascade,
    ServerService,
)

Session = Annotated[AsyncSession, Depends(get_session)]


async def get_cache() -> KeyValueCache:
    return KeyValueCache(await get_redis())


Cache = Annotated[KeyValueCache, Depends(get_cache)]


def get_versioned_cache(kv: Cache) -> VersionedCache:
    return VersionedCache(kv)


def get_aggregate_cache(kv: Cache) -> AggregateCache:
    return AggregateCache(kv)


Versioned = Annotated[VersionedCache, Depends(get_versioned_cache)]
Aggregates = Annotated[AggregateCache, Depends(get_aggregate_cache)]


def get_server_cascade(session: Session) -> ServerCascade:
    return ServerCascade(ConnectivityRepository(session), FeedbackRepository(session))


Cascade = Annotated[ServerCascade, Depends(get_server_cascade)]


def get_ad_service(session: Session, cache: Versioned) -> AdService:
    return AdService(AdRepository(session), cache)


def get_server_service(session: Session, cascade: Cascade, cache: Versioned) -> ServerService:
    return ServerService(ServerRepository(session), cascade, cache)


def get_country_service(
    session: Session, cascade: Cascade, cache: Versioned
) -> CountryService:
    return CountryService(
        CountryRepository(session),
        CityRepository(session),
        ServerRepository(session),
        cascade,
        cache,
    )


def get_city_service(session: Session, cascade: Cascade, cache: Versioned) -> CityService:
    return CityService(CityRepository(session), ServerRepository(session), cascade, cache)


def get_faq_service(session: Session, cache: Versioned) -> FaqService:
    return FaqService(FaqRepository(session), cache)


def get_feedback_service(session: Session, cache: Versioned) -> FeedbackService:
    return FeedbackService(FeedbackRepository(session), cache)


def get_connectivity_service(
    session: Session, cache: Versioned, aggregates: Aggregates
) -> ConnectivityService:
    return ConnectivityService(ConnectivityRepository(session), cache, aggregates)


def get_dropdown_service(session: Session, cache: Versioned) -> DropdownService:
    return DropdownService(DropdownRepository(session), cache)


def get_page_service(session: Session, cache: Versioned) -> PageService:
    return PageService(PageRepository(session), cache)


def get_dashboard_service(session: Session, aggregates: Aggregates) -> DashboardService:
    return DashboardService(StatsRepository(session), aggregates)
