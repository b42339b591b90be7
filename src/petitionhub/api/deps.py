"""Shared FastAPI dependencies for PetitionHub routers.

The cache collaborators live on ``app.state`` (set up by ``create_app``) and
reach handlers through these dependencies, so tests can build an app around
an in-memory store or override any provider.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request

from petitionhub.api.errors import ValidationError
from petitionhub.cache.invalidation import InvalidationBroadcaster
from petitionhub.cache.response_cache import ResponseCache
from petitionhub.cache.store import CacheStore
from petitionhub.config import Settings
from petitionhub.persistence.db import get_session_factory
from petitionhub.persistence.repositories import Repositories

# =============================================================================
# Application state
# =============================================================================


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache_store(request: Request) -> CacheStore | None:
    return request.app.state.cache_store


def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def get_invalidator(request: Request) -> InvalidationBroadcaster:
    return request.app.state.invalidator


# =============================================================================
# Persistence
# =============================================================================


async def get_repositories(request: Request) -> AsyncIterator[Repositories]:
    """Repositories bound to a per-request session.

    An app built with injected repositories hands those out instead and
    never opens a database session.
    """
    injected = getattr(request.app.state, "repositories", None)
    if injected is not None:
        yield injected
        return

    config = get_settings(request)
    async with get_session_factory()() as session:
        yield Repositories.from_session(
            session,
            default_target=config.petition_default_target,
            duration_days=config.petition_default_duration_days,
        )


# =============================================================================
# Path parameters
# =============================================================================


def parse_int_id(raw: str, resource_type: str = "resource") -> int:
    """Parse a numeric path identifier, rejecting anything else with a 400."""
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Invalid {resource_type} ID") from None
    if value <= 0:
        raise ValidationError(f"Invalid {resource_type} ID")
    return value


def parse_user_id(raw: str) -> str:
    """Return the path user id verbatim; it must equal the cache key segment.

    Surrounding whitespace is a 400.
    """
    if not raw or raw != raw.strip():
        raise ValidationError("Invalid user ID")
    return raw


# Type aliases for cleaner router signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]
ResponseCacheDep = Annotated[ResponseCache, Depends(get_response_cache)]
InvalidatorDep = Annotated[InvalidationBroadcaster, Depends(get_invalidator)]
RepositoriesDep = Annotated[Repositories, Depends(get_repositories)]
