"""FastAPI application factory for the admin API.

Creates the application with:
- Health endpoints (/health, /health/live, /health/ready)
- Lifecycle management for database and cache connections
- Request ID propagation into logs
- Uniform JSON error bodies
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.types import ExceptionHandler

from vynox.api.errors import ApiError, api_exception_handler, generic_exception_handler
from vynox.api.middleware import RequestIdMiddleware
from vynox.api.routers import health
from vynox.cache import close_redis, get_redis
from vynox.config import settings
from vynox.observability import configure_logging
from vynox.persistence.db import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open database and Redis connections on startup, close them on shutdown."""
    configure_logging(
        json_format=settings.env != "dev",
        level=settings.log_level,
    )

    logger.info("Starting %s (%s)", settings.app_name, settings.env)
    await init_db()
    if await get_redis() is None:
        logger.info("Caching disabled, serving every read from the database")
    logger.info("Startup complete")

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_redis()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Vynox Admin",
        description="Admin API for the VPN server directory",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_exception_handler))
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)

    return app


app = create_app()
