"""CLI command for running the API server.

Usage:
    petitionhub serve
    petitionhub serve --port 8080 --host 0.0.0.0
    petitionhub serve --reload --log-level debug
"""

from __future__ import annotations

import typer

from petitionhub.config import settings

app = typer.Typer(help="Run the PetitionHub API server")


@app.callback(invoke_without_command=True)
def serve(
    host: str = typer.Option(settings.host, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(
        False,
        "--reload",
        "-r",
        help="Enable auto-reload for development",
    ),
    workers: int = typer.Option(1, "--workers", "-w", help="Number of worker processes"),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
    access_log: bool = typer.Option(
        True,
        "--access-log/--no-access-log",
        help="Enable/disable access logging",
    ),
) -> None:
    """Run the PetitionHub API server.

    Every worker shares the configured cache store, so invalidation after a
    write is visible to all of them.
    """
    import uvicorn

    workers_effective = workers if not reload else 1  # Reload requires single worker

    typer.echo("Starting PetitionHub server...")
    typer.echo(f"  Host: {host}")
    typer.echo(f"  Port: {port}")
    typer.echo(f"  Workers: {workers_effective}")
    typer.echo(f"  Cache backend: {settings.cache_backend}")
    if workers_effective > 1 and settings.cache_backend == "memory":
        typer.echo("  Warning: the memory cache backend is per-process", err=True)
    if reload:
        typer.echo("  Reload: enabled")
    typer.echo()
    typer.echo(f"API documentation: http://{host}:{port}/docs")
    typer.echo()

    uvicorn.run(
        app="petitionhub.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers_effective,
        log_level=log_level.lower(),
        access_log=access_log,
    )
