"""Tests for CORS headers and preflight handling."""

import pytest
from httpx import ASGITransport, AsyncClient

from petitionhub.api.app import create_app
from petitionhub.api.middleware.cors import CORSConfig, cors_headers
from petitionhub.cache.store import InMemoryCacheStore
from petitionhub.config import Settings
from petitionhub.persistence.repositories import Repositories


class TestCORSConfig:
    """Test CORS configuration."""

    def test_defaults(self) -> None:
        """Default policy allows any origin with the platform's methods."""
        config = CORSConfig()
        assert config.allow_origins == ["*"]
        assert config.allow_methods == ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
        assert config.allow_headers == ["Content-Type", "Authorization"]
        assert config.max_age == 86400

    def test_production_requires_origins(self) -> None:
        """Production config needs an explicit allow-list."""
        with pytest.raises(ValueError):
            CORSConfig.production([])

    def test_from_values(self) -> None:
        """Comma-separated origins are split and trimmed."""
        config = CORSConfig.from_values(" https://a.example , https://b.example ", max_age=60)
        assert config.allow_origins == ["https://a.example", "https://b.example"]
        assert config.max_age == 60

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables configure the policy."""
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example")
        monkeypatch.setenv("CORS_MAX_AGE", "600")
        config = CORSConfig.from_env()
        assert config.allow_origins == ["https://a.example"]
        assert config.max_age == 600


class TestCorsHeaders:
    """Test the header set."""

    def test_wildcard(self) -> None:
        headers = cors_headers()
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert headers["Access-Control-Allow-Methods"] == "GET, POST, PUT, DELETE, OPTIONS"
        assert headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"
        assert headers["Access-Control-Max-Age"] == "86400"

    def test_allow_listed_origin_echoed(self) -> None:
        config = CORSConfig.production(["https://a.example"])
        assert cors_headers(config, "https://a.example")["Access-Control-Allow-Origin"] == (
            "https://a.example"
        )
        assert cors_headers(config, "https://evil.example")["Access-Control-Allow-Origin"] == "*"


class TestCorsMiddleware:
    """Test CORS through the application."""

    @pytest.mark.asyncio
    async def test_preflight_answered_with_204(self, client: AsyncClient) -> None:
        """OPTIONS on any path returns an empty 204 with CORS headers."""
        response = await client.options("/api/petitions")

        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "PUT" in response.headers["Access-Control-Allow-Methods"]

    @pytest.mark.asyncio
    async def test_preflight_on_unknown_path(self, client: AsyncClient) -> None:
        """Preflight never reaches routing."""
        response = await client.options("/api/does-not-exist")
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_headers_on_success(self, client: AsyncClient) -> None:
        response = await client.get("/health/live")
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.asyncio
    async def test_headers_on_error(self, client: AsyncClient) -> None:
        response = await client.get("/api/petitions/not-a-number")
        assert response.status_code == 400
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.asyncio
    async def test_configured_origin_echoed(self, repos: Repositories) -> None:
        """An allow-listed Origin header is echoed back."""
        settings = Settings(_env_file=None, cors_origins="https://petitions.example")
        app = create_app(settings=settings, cache_store=InMemoryCacheStore(), repositories=repos)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get(
                "/health/live", headers={"Origin": "https://petitions.example"}
            )

        assert response.headers["Access-Control-Allow-Origin"] == "https://petitions.example"
