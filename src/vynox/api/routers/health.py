"""Health check endpoints.

- /health/live  - Liveness check (always OK while the process runs)
- /health/ready - Readiness check (database required, Redis optional)
- /health       - Full report for external checks

Redis only accelerates reads, so an unreachable Redis degrades the
service but keeps it ready. An unreachable database makes it unhealthy.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from vynox.cache.redis import KeyValueCache, get_redis
from vynox.persistence.db import health_check as db_health_check

router = APIRouter(tags=["health"])

CHECK_TIMEOUT = 5.0  # seconds


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def check_database() -> ComponentHealth:
    """Check database connectivity."""
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(db_health_check(), timeout=CHECK_TIMEOUT)
    except asyncio.TimeoutError:
        return ComponentHealth(
            name="database",
            status=HealthStatus.UNHEALTHY,
            latency_ms=(time.monotonic() - start) * 1000,
            message="Database check timed out",
        )
    return ComponentHealth(
        name="database",
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        latency_ms=(time.monotonic() - start) * 1000,
        message=None if healthy else "Database check failed",
    )


async def check_redis() -> ComponentHealth:
    """Check Redis connectivity; reported as disabled when caching is off."""
    start = time.monotonic()
    cache = KeyValueCache(await get_redis())
    if not cache.enabled:
        return ComponentHealth(name="redis", status=HealthStatus.DISABLED, latency_ms=0.0)
    try:
        healthy = await asyncio.wait_for(cache.health_check(), timeout=CHECK_TIMEOUT)
    except asyncio.TimeoutError:
        healthy = False
    return ComponentHealth(
        name="redis",
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        latency_ms=(time.monotonic() - start) * 1000,
        message=None if healthy else "Redis unavailable, serving from database",
    )


def overall_status(database: ComponentHealth, redis: ComponentHealth) -> HealthStatus:
    if database.status != HealthStatus.HEALTHY:
        return HealthStatus.UNHEALTHY
    if redis.status == HealthStatus.UNHEALTHY:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


async def _report() -> tuple[dict[str, Any], int]:
    database, redis = await asyncio.gather(check_database(), check_redis())
    status = overall_status(database, redis)
    result = {
        "status": status.value,
        "components": [database.to_dict(), redis.to_dict()],
    }
    return result, 503 if status == HealthStatus.UNHEALTHY else 200


@router.get("/health")
async def full_health() -> JSONResponse:
    """Full health report; 503 only when the database is unreachable."""
    result, status_code = await _report()
    return JSONResponse(content=result, status_code=status_code)


@router.get("/health/live")
async def live() -> dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}


@router.get("/health/ready")
async def ready() -> JSONResponse:
    """Readiness check.

    Returns 200 when the database answers, even if Redis does not.
    """
    result, status_code = await _report()
    return JSONResponse(content=result, status_code=status_code)
