"""Health check endpoints for PetitionHub.

Kubernetes-compatible liveness and readiness probes:
- /health/live  - Liveness probe (always returns OK if process is running)
- /health/ready - Readiness probe (checks database and cache store)

The cache store is best effort, so an unreachable store only degrades
readiness; an unreachable database fails it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import Response

from petitionhub.api.responses import json_response

router = APIRouter(tags=["health"])

CHECK_TIMEOUT_SECONDS = 5.0


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def run_check(
    name: str,
    check: Callable[[], Awaitable[bool]],
    failure_status: HealthStatus = HealthStatus.UNHEALTHY,
) -> ComponentHealth:
    """Run one probe with a timeout, reporting failures as ``failure_status``."""
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(check(), timeout=CHECK_TIMEOUT_SECONDS)
        message = None if healthy else f"{name} check failed"
    except asyncio.TimeoutError:
        healthy, message = False, f"{name} check timed out"
    except Exception as e:
        healthy, message = False, str(e)

    latency = (time.monotonic() - start) * 1000
    return ComponentHealth(
        name=name,
        status=HealthStatus.HEALTHY if healthy else failure_status,
        latency_ms=latency,
        message=message,
    )


@router.get("/health/live")
async def live() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(request: Request) -> Response:
    """Readiness probe.

    Returns 200 when the database answers (cache store state is reported
    alongside), 503 otherwise.
    """
    state = request.app.state
    checks = []

    db_check = getattr(state, "db_health_check", None)
    if db_check is not None:
        checks.append(run_check("database", db_check))

    store = getattr(state, "cache_store", None)
    if store is not None:
        checks.append(run_check("cache", store.ping, failure_status=HealthStatus.DEGRADED))

    components: list[ComponentHealth] = list(await asyncio.gather(*checks))

    if any(c.status == HealthStatus.UNHEALTHY for c in components):
        overall_status = HealthStatus.UNHEALTHY
    elif any(c.status == HealthStatus.DEGRADED for c in components):
        overall_status = HealthStatus.DEGRADED
    else:
        overall_status = HealthStatus.HEALTHY

    status_code = 503 if overall_status == HealthStatus.UNHEALTHY else 200
    return json_response(
        {"status": overall_status.value, "components": [c.to_dict() for c in components]},
        status_code=status_code,
        headers={"Cache-Control": "no-store"},
    )
