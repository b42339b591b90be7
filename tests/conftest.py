"""Global pytest configuration and fixtures.

Provides a controllable clock, an in-memory cache store and an application
wired to mocked repositories, so cache behaviour is tested end to end
without Redis or PostgreSQL.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from petitionhub.api.app import create_app
from petitionhub.cache.store import InMemoryCacheStore
from petitionhub.config import Settings
from petitionhub.models import (
    Category,
    Creator,
    Petition,
    PetitionStatus,
    PetitionType,
    PetitionWithDetails,
    Signature,
)
from petitionhub.persistence.repositories import (
    CategoryRepository,
    PetitionRepository,
    Repositories,
    SignatureRepository,
    UserRepository,
)

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock returning a fixed time until advanced."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_petition(**overrides: Any) -> Petition:
    values: dict[str, Any] = {
        "id": 42,
        "title": "My Slug",
        "description": "Fix the crossing on Main Street",
        "slug": "my-slug",
        "type": PetitionType.LOCAL,
        "target_count": 1000,
        "current_count": 0,
        "status": PetitionStatus.DRAFT,
        "created_by": "7",
        "created_at": CREATED_AT,
    }
    values.update(overrides)
    return Petition(**values)


def make_petition_details(**overrides: Any) -> PetitionWithDetails:
    categories = overrides.pop("categories", [Category(id=1, name="Transport")])
    petition = make_petition(**overrides)
    return PetitionWithDetails(
        **petition.model_dump(),
        creator=Creator(first_name="Ada", last_name="Lovelace"),
        categories=categories,
    )


def make_signature(**overrides: Any) -> Signature:
    values: dict[str, Any] = {
        "id": 1,
        "petition_id": 42,
        "user_id": "7",
        "comment": None,
        "created_at": CREATED_AT,
    }
    values.update(overrides)
    return Signature(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, cache_backend="memory", env="test")


@pytest.fixture
def repos() -> Repositories:
    """Repositories whose methods are AsyncMocks; session-less, so commit is a no-op."""
    return Repositories(
        petitions=AsyncMock(spec=PetitionRepository),
        signatures=AsyncMock(spec=SignatureRepository),
        categories=AsyncMock(spec=CategoryRepository),
        users=AsyncMock(spec=UserRepository),
    )


@pytest.fixture
def app(settings: Settings, store: InMemoryCacheStore, repos: Repositories) -> FastAPI:
    return create_app(settings=settings, cache_store=store, repositories=repos)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
