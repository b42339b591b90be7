"""FastAPI application factory for PetitionHub.

Creates the application with:
- Petition, signature, category and user routers under the API prefix
- Request-keyed response cache and prefix invalidation on ``app.state``
- CORS headers on every response, preflight answered with 204
- Consistent JSON error responses for every failure path
- Correlation ids, structured logging and Prometheus metrics
- Lifecycle management for the database and the cache store
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ExceptionHandler

from petitionhub.api.errors import ErrorResponseBuilder, PetitionApiError, api_exception_handler
from petitionhub.api.middleware import CORSConfig, CORSHeadersMiddleware, CorrelationMiddleware
from petitionhub.api.routers import (
    categories,
    health,
    petition,
    petitions,
    signatures,
    system,
    users,
)
from petitionhub.api.routers import metrics as metrics_router
from petitionhub.cache import InvalidationBroadcaster, ResponseCache, create_cache_store
from petitionhub.cache.store import CacheStore
from petitionhub.config import Settings
from petitionhub.config import settings as default_settings
from petitionhub.observability import configure_logging
from petitionhub.observability.metrics import MetricsMiddleware, get_metrics
from petitionhub.persistence.db import close_db, health_check, init_db
from petitionhub.persistence.repositories import Repositories

logger = logging.getLogger(__name__)


def install_cache(app: FastAPI, store: CacheStore | None) -> None:
    """Attach a cache store and the collaborators built around it."""
    config: Settings = app.state.settings
    app.state.cache_store = store
    app.state.response_cache = ResponseCache(
        store,
        errors=app.state.error_builder,
        timeout=config.cache_timeout_seconds,
        api_prefix=config.api_prefix,
    )
    app.state.invalidator = InvalidationBroadcaster(
        store, timeout=config.cache_invalidation_timeout_seconds
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Initialize Prometheus metrics
    - Create database tables (unless repositories were injected)
    - Connect the cache store (unless one was injected)

    On shutdown:
    - Close the cache store
    - Close database connections
    """
    config: Settings = app.state.settings

    # JSON in production, console in dev
    configure_logging(json_format=config.env != "dev", level=config.log_level)
    get_metrics()

    logger.info(f"Starting PetitionHub ({config.env})")
    owns_db = app.state.repositories is None
    if owns_db:
        await init_db()

    if app.state.cache_store is None and config.cache_enabled:
        try:
            install_cache(app, await create_cache_store(config))
            logger.info(f"Response cache enabled ({config.cache_backend})")
        except Exception as e:
            logger.warning(f"Cache store unavailable, serving uncached: {e!r}")

    logger.info("PetitionHub startup complete")

    yield

    logger.info("Shutting down PetitionHub")
    store = app.state.cache_store
    if store is not None:
        await store.close()
    if owns_db:
        await close_db()
    logger.info("PetitionHub shutdown complete")


def create_app(
    settings: Settings | None = None,
    cache_store: CacheStore | None = None,
    repositories: Repositories | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration; defaults to the environment-derived settings
        cache_store: Store for cached responses; created at startup when omitted
        repositories: Data access to use instead of per-request DB sessions
    """
    config = settings or default_settings
    cors_config = CORSConfig.from_values(config.cors_origins, config.cors_max_age)

    app = FastAPI(
        title="PetitionHub",
        description="Petition platform API with a request-keyed response cache",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = config
    app.state.cors_config = cors_config
    app.state.error_builder = ErrorResponseBuilder(cors=cors_config)
    app.state.repositories = repositories
    app.state.db_health_check = health_check if repositories is None else None
    install_cache(app, cache_store)

    # Order: CORS (outermost) -> Metrics -> Correlation (innermost)
    app.add_middleware(CorrelationMiddleware)
    if config.enable_metrics:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(CORSHeadersMiddleware, config=cors_config)

    handler = cast(ExceptionHandler, api_exception_handler)
    app.add_exception_handler(PetitionApiError, handler)
    app.add_exception_handler(StarletteHTTPException, handler)
    app.add_exception_handler(RequestValidationError, handler)
    app.add_exception_handler(Exception, handler)

    app.include_router(health.router)
    if config.enable_metrics:
        app.include_router(metrics_router.router)

    for module in (petitions, petition, categories, signatures, users, system):
        app.include_router(module.router, prefix=config.api_prefix)

    return app
