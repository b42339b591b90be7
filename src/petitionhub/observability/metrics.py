"""Prometheus metrics for PetitionHub.

Provides metrics collection and exposure:
- HTTP request metrics (latency, count)
- Response cache metrics (hit/miss/bypass/degraded outcomes, invalidations)
- Cache store errors by operation

Usage:
    from petitionhub.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.http_requests_total.labels(method="GET", path="/api/petitions", status=200).inc()
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from petitionhub.config import settings

if TYPE_CHECKING:
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

_NUMERIC_SEGMENT = re.compile(r"^\d+$")


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # HTTP metrics
    http_requests_total: Any = None
    http_request_duration_seconds: Any = None

    # Cache metrics
    cache_requests_total: Any = None
    cache_invalidated_keys_total: Any = None
    cache_store_errors_total: Any = None

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not settings.enable_metrics:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = REGISTRY

        self.http_requests_total = Counter(
            "petitionhub_http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
        )

        self.http_request_duration_seconds = Histogram(
            "petitionhub_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "path"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
        )

        self.cache_requests_total = Counter(
            "petitionhub_cache_requests_total",
            "Response cache lookups by outcome",
            ["namespace", "outcome"],
        )

        self.cache_invalidated_keys_total = Counter(
            "petitionhub_cache_invalidated_keys_total",
            "Cache keys deleted by prefix invalidation",
            ["namespace"],
        )

        self.cache_store_errors_total = Counter(
            "petitionhub_cache_store_errors_total",
            "Cache store failures absorbed by the response cache",
            ["operation"],
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if not settings.enable_metrics or self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


def record_cache_outcome(namespace: str, outcome: str) -> None:
    metrics = get_metrics()
    if metrics.cache_requests_total:
        metrics.cache_requests_total.labels(namespace=namespace, outcome=outcome).inc()


def record_cache_store_error(operation: str) -> None:
    metrics = get_metrics()
    if metrics.cache_store_errors_total:
        metrics.cache_store_errors_total.labels(operation=operation).inc()


def record_invalidation(namespace: str, deleted: int) -> None:
    metrics = get_metrics()
    if metrics.cache_invalidated_keys_total and deleted:
        metrics.cache_invalidated_keys_total.labels(namespace=namespace).inc(deleted)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware for HTTP request metrics.

    Records:
    - Request count by method, path, status
    - Request duration histogram
    """

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Record metrics for HTTP requests."""
        # Skip metrics for health and metrics endpoints
        if request.url.path.startswith("/health") or request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = normalize_path(request.url.path)

        start_time = time.perf_counter()
        status_code = 500  # Default in case of exception

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time

            if self.metrics.http_requests_total:
                self.metrics.http_requests_total.labels(
                    method=method,
                    path=path,
                    status=status_code,
                ).inc()

            if self.metrics.http_request_duration_seconds:
                self.metrics.http_request_duration_seconds.labels(
                    method=method,
                    path=path,
                ).observe(duration)


def normalize_path(path: str) -> str:
    """Replace identifiers with placeholders to bound label cardinality.

    Examples:
        /api/petitions/42/publish -> /api/petitions/{id}/publish
        /api/petition/save-the-park -> /api/petition/{slug}
        /api/users/7/signatures -> /api/users/{id}/signatures
    """
    parts = path.strip("/").split("/")
    normalized = []
    for i, part in enumerate(parts):
        previous = parts[i - 1] if i else ""
        if previous == "petition":
            normalized.append("{slug}")
        elif previous in ("petitions", "users") or _NUMERIC_SEGMENT.match(part):
            normalized.append("{id}")
        else:
            normalized.append(part)
    return "/" + "/".join(normalized) if normalized else path
