"""CORS (Cross-Origin Resource Sharing) headers for the PetitionHub API.

Every response, including errors built outside the normal handler flow,
carries the same permissive header set:
- Access-Control-Allow-Origin: "*" unless an explicit allow-list contains
  the request origin, in which case the origin is echoed back
- Allowed methods GET/POST/PUT/DELETE/OPTIONS
- Allowed headers Content-Type/Authorization
- OPTIONS preflight answered with an empty 204

Starlette's CORSMiddleware only decorates requests that send an Origin
header, so the headers are attached here unconditionally.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, field

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp


@dataclass
class CORSConfig:
    """CORS configuration settings.

    Attributes:
        allow_origins: Origins echoed back verbatim; "*" allows any origin
        allow_methods: Allowed HTTP methods
        allow_headers: Allowed request headers
        expose_headers: Headers the browser may read
        max_age: Preflight cache duration in seconds
    """

    allow_origins: list[str] = field(default_factory=lambda: ["*"])
    allow_methods: list[str] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allow_headers: list[str] = field(default_factory=lambda: ["Content-Type", "Authorization"])
    expose_headers: list[str] = field(
        default_factory=lambda: ["ETag", "X-Cache", "X-Cache-TTL", "X-Request-ID"]
    )
    max_age: int = 86400

    @classmethod
    def development(cls) -> CORSConfig:
        """Create a permissive config for development."""
        return cls(allow_origins=["*"])

    @classmethod
    def production(cls, allowed_origins: Sequence[str]) -> CORSConfig:
        """Create a config that echoes only the given origins.

        Other origins still receive "*" so public reads keep working.
        """
        if not allowed_origins:
            raise ValueError("Production config requires at least one allowed origin")
        return cls(allow_origins=list(allowed_origins))

    @classmethod
    def from_env(cls) -> CORSConfig:
        """Create config from environment variables.

        Environment variables:
            CORS_ORIGINS: Comma-separated list of origins, or "*"
            CORS_MAX_AGE: Integer seconds
        """
        return cls.from_values(
            os.environ.get("CORS_ORIGINS", "*"),
            int(os.environ.get("CORS_MAX_AGE", "86400")),
        )

    @classmethod
    def from_values(cls, origins: str, max_age: int = 86400) -> CORSConfig:
        if origins.strip() == "*":
            return cls(allow_origins=["*"], max_age=max_age)
        return cls(
            allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
            max_age=max_age,
        )


DEFAULT_CORS_CONFIG = CORSConfig.development()


def cors_headers(config: CORSConfig | None = None, origin: str | None = None) -> dict[str, str]:
    """Build the CORS header set for a response."""
    config = config or DEFAULT_CORS_CONFIG
    allowed_origin = origin if origin and origin in config.allow_origins else "*"
    return {
        "Access-Control-Allow-Origin": allowed_origin,
        "Access-Control-Allow-Methods": ", ".join(config.allow_methods),
        "Access-Control-Allow-Headers": ", ".join(config.allow_headers),
        "Access-Control-Expose-Headers": ", ".join(config.expose_headers),
        "Access-Control-Max-Age": str(config.max_age),
    }


def request_cors_headers(request: Request) -> dict[str, str]:
    """CORS headers for a request, using the app's configured policy."""
    app = request.scope.get("app")
    config = getattr(getattr(app, "state", None), "cors_config", None)
    return cors_headers(config, request.headers.get("origin"))


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Attach CORS headers to every response and answer preflight requests."""

    def __init__(self, app: ASGIApp, config: CORSConfig | None = None) -> None:
        super().__init__(app)
        self.config = config or DEFAULT_CORS_CONFIG

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        headers = cors_headers(self.config, request.headers.get("origin"))

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
