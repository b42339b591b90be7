"""Observability module for PetitionHub.

Provides metrics and structured logging:
- Prometheus metrics for HTTP requests and the response cache
- JSON structured logging with correlation IDs
"""

from petitionhub.observability.logging import (
    LogContext,
    configure_logging,
    correlation_id_var,
    request_id_var,
)
from petitionhub.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "request_id_var",
    "correlation_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "MetricsMiddleware",
]
