"""Command-line interface for the admin API.

Usage:
    vynox serve --port 3000
    vynox init-db
    vynox cache-reset
    vynox cache-reset servers countries
"""

from __future__ import annotations

import asyncio

import typer

from vynox.cache import KeyValueCache, Namespace, VersionedCache, close_redis, get_redis
from vynox.config import settings

app = typer.Typer(
    name="vynox",
    help="Vynox: admin API for a VPN server directory",
    no_args_is_help=True,
)


@app.command()
def serve(
    host: str = typer.Option(settings.host, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
    workers: int = typer.Option(1, "--workers", "-w", help="Number of worker processes"),
    log_level: str = typer.Option("info", "--log-level", "-l", help="Uvicorn log level"),
) -> None:
    """Run the API server."""
    import uvicorn

    typer.echo(f"Starting {settings.app_name} on {host}:{port}")
    uvicorn.run(
        app="vynox.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers if not reload else 1,
        log_level=log_level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create missing database tables."""
    from vynox.persistence.db import close_db
    from vynox.persistence.db import init_db as create_tables

    async def run() -> None:
        try:
            await create_tables()
        finally:
            await close_db()

    asyncio.run(run())
    typer.echo("Database tables created")


@app.command("cache-reset")
def cache_reset(
    namespaces: list[Namespace] = typer.Argument(
        None, help="Namespaces to invalidate (default: all)"
    ),
) -> None:
    """Invalidate cached lists by bumping namespace generations.

    Point entries are left to expire through their TTL.
    """
    targets = namespaces or list(Namespace)

    async def run() -> list[tuple[str, int | None]]:
        try:
            cache = VersionedCache(KeyValueCache(await get_redis()))
            return [(ns.value, await cache.bump_generation(ns)) for ns in targets]
        finally:
            await close_redis()

    for name, generation in asyncio.run(run()):
        if generation is None:
            typer.echo(f"{name}: cache unavailable", err=True)
        else:
            typer.echo(f"{name}: generation {generation}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
