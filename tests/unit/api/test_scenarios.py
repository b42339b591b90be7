"""End-to-end cache scenarios through the application.

Each scenario drives real routes against an in-memory cache store with a
controlled clock; repositories are mocked so the tests observe exactly when
the payload is recomputed.
"""

import pytest
from conftest import FakeClock, make_petition, make_petition_details, make_signature
from httpx import AsyncClient

from petitionhub.cache.keys import build_key
from petitionhub.cache.store import InMemoryCacheStore
from petitionhub.models import PetitionStatus
from petitionhub.persistence.repositories import Repositories


class TestListingCache:
    """Repeated listing requests are served from the cache."""

    @pytest.mark.asyncio
    async def test_listing_miss_then_hit(
        self,
        client: AsyncClient,
        repos: Repositories,
        store: InMemoryCacheStore,
        clock: FakeClock,
    ) -> None:
        """GET /petitions computes once, then hits within the TTL."""
        repos.petitions.list_all.return_value = [make_petition_details()]

        first = await client.get("/api/petitions", params={"limit": 10, "offset": 0})

        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert first.headers["X-Cache-TTL"] == "60"
        entry = await store.get(
            build_key("GET", "/api/petitions", {"limit": "10", "offset": "0"})
        )
        assert entry is not None
        assert entry.ttl_seconds == 60

        clock.advance(1)
        second = await client.get("/api/petitions", params={"limit": 10, "offset": 0})

        assert second.status_code == 200
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json()
        repos.petitions.list_all.assert_awaited_once_with(limit=10, offset=0, petition_type=None)

    @pytest.mark.asyncio
    async def test_listing_expires(
        self, client: AsyncClient, repos: Repositories, clock: FakeClock
    ) -> None:
        """After the TTL the listing is recomputed."""
        repos.petitions.list_all.return_value = []

        await client.get("/api/petitions")
        clock.advance(60)
        response = await client.get("/api/petitions")

        assert response.headers["X-Cache"] == "MISS"
        assert repos.petitions.list_all.await_count == 2


class TestPublishInvalidation:
    """Publishing a petition drops every cached view of it."""

    @pytest.mark.asyncio
    async def test_publish_then_read_by_slug(
        self, client: AsyncClient, repos: Repositories, store: InMemoryCacheStore
    ) -> None:
        """After publish the slug view is recomputed and shows the new status."""
        repos.petitions.get_by_slug.return_value = make_petition_details()
        repos.petitions.list_all.return_value = [make_petition_details()]

        cached = await client.get("/api/petition/my-slug")
        assert cached.headers["X-Cache"] == "MISS"
        assert cached.json()["status"] == "draft"
        await client.get("/api/petitions")
        assert (await client.get("/api/petition/my-slug")).headers["X-Cache"] == "HIT"

        repos.petitions.publish.return_value = make_petition(status=PetitionStatus.ACTIVE)
        repos.petitions.get_by_slug.return_value = make_petition_details(
            status=PetitionStatus.ACTIVE
        )

        published = await client.post("/api/petitions/42/publish")
        assert published.status_code == 200
        assert published.json()["status"] == "active"
        assert [key async for key in store.scan_prefix("petitions:")] == []
        assert [key async for key in store.scan_prefix("petition:")] == []

        fresh = await client.get("/api/petition/my-slug")
        assert fresh.headers["X-Cache"] == "MISS"
        assert fresh.json()["status"] == "active"
        assert repos.petitions.get_by_slug.await_count == 2

    @pytest.mark.asyncio
    async def test_publish_missing_petition(
        self, client: AsyncClient, repos: Repositories, store: InMemoryCacheStore
    ) -> None:
        """Publishing an unknown petition is a 404 and invalidates nothing."""
        repos.petitions.list_all.return_value = []
        await client.get("/api/petitions")
        repos.petitions.publish.return_value = None

        response = await client.post("/api/petitions/404/publish")

        assert response.status_code == 404
        assert response.json() == {"error": "Petition '404' not found"}
        assert len(store) == 1


class TestSignatureInvalidation:
    """Signing refreshes only the signer's cached signature list."""

    @pytest.mark.asyncio
    async def test_sign_then_read_user_signatures(
        self, client: AsyncClient, repos: Repositories, store: InMemoryCacheStore
    ) -> None:
        """The signer's list is recomputed; another user's list stays cached."""
        repos.signatures.list_by_user.return_value = [make_signature(petition_id=1)]

        first = await client.get("/api/users/7/signatures")
        assert first.headers["X-Cache"] == "MISS"
        assert first.headers["X-Cache-TTL"] == "120"
        assert first.json() == [1]
        await client.get("/api/users/8/signatures")

        repos.petitions.get_record.return_value = make_petition(id=2, slug="other-2")
        repos.signatures.has_signed.return_value = False
        repos.signatures.create.return_value = make_signature(id=5, petition_id=2)

        signed = await client.post(
            "/api/signatures", json={"petition_id": 2, "user_id": "7", "comment": "Yes"}
        )
        assert signed.status_code == 201
        assert signed.json()["petition_id"] == 2

        assert build_key("GET", "/api/users/7/signatures") not in store
        assert build_key("GET", "/api/users/8/signatures") in store

        repos.signatures.list_by_user.return_value = [
            make_signature(petition_id=2),
            make_signature(petition_id=1),
        ]
        fresh = await client.get("/api/users/7/signatures")
        assert fresh.headers["X-Cache"] == "MISS"
        assert fresh.json() == [2, 1]

    @pytest.mark.asyncio
    async def test_duplicate_signature_conflict(
        self, client: AsyncClient, repos: Repositories, store: InMemoryCacheStore
    ) -> None:
        """A second signature by the same user is a 409 and nothing is invalidated."""
        repos.signatures.list_by_user.return_value = [make_signature(petition_id=42)]
        await client.get("/api/users/7/signatures")

        repos.petitions.get_record.return_value = make_petition()
        repos.signatures.has_signed.return_value = True

        response = await client.post("/api/signatures", json={"petition_id": 42, "user_id": "7"})

        assert response.status_code == 409
        assert response.json() == {"error": "You have already signed this petition"}
        assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
        repos.signatures.create.assert_not_awaited()
        assert build_key("GET", "/api/users/7/signatures") in store
