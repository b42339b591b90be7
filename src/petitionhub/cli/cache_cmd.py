"""CLI commands for the response cache.

Usage:
    petitionhub cache invalidate "petitions:"
    petitionhub cache invalidate "user-signatures:7:" "petition:"
    petitionhub cache ping
"""

from __future__ import annotations

import asyncio

import typer

from petitionhub.cache.invalidation import InvalidationBroadcaster
from petitionhub.cache.redis import create_cache_store
from petitionhub.config import settings
from petitionhub.observability.logging import LogContext

app = typer.Typer(help="Inspect and invalidate the response cache")


async def _invalidate(prefixes: list[str]) -> int:
    store = await create_cache_store(settings)
    try:
        with LogContext(request_id="cli-invalidate"):
            return await InvalidationBroadcaster(store).invalidate(*prefixes)
    finally:
        await store.close()


async def _ping() -> bool:
    store = await create_cache_store(settings)
    try:
        return await store.ping()
    finally:
        await store.close()


@app.command()
def invalidate(
    prefixes: list[str] = typer.Argument(..., help="Key prefixes, e.g. 'petitions:'"),
) -> None:
    """Delete every cached response under the given key prefixes."""
    if any(not prefix for prefix in prefixes):
        typer.echo("Prefixes must be non-empty", err=True)
        raise typer.Exit(code=2)

    deleted = asyncio.run(_invalidate(prefixes))
    typer.echo(f"Deleted {deleted} cached entries")


@app.command()
def ping() -> None:
    """Check that the configured cache store answers."""
    if asyncio.run(_ping()):
        typer.echo(f"Cache store ({settings.cache_backend}) is reachable")
        return
    typer.echo(f"Cache store ({settings.cache_backend}) is unreachable", err=True)
    raise typer.Exit(code=1)
