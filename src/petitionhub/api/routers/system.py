"""Cache store round-trip probe.

GET /uptime writes a short-lived probe entry, reads it back and deletes it,
reporting which step failed. Unlike readiness this exercises every store
operation the response cache depends on.
"""

from __future__ import annotations

import asyncio
import logging
import time

import orjson
from fastapi import APIRouter, Request, Response

from petitionhub.api.deps import SettingsDep, get_cache_store
from petitionhub.api.errors import NO_STORE
from petitionhub.api.responses import json_response
from petitionhub.cache.store import CacheEntry, CacheStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])

PROBE_KEY = "system:uptime"
PROBE_TTL_SECONDS = 60


async def _round_trip(store: CacheStore, value: bytes, steps: list[str]) -> CacheEntry:
    steps.append("put")
    await store.put(PROBE_KEY, value, PROBE_TTL_SECONDS)
    steps.append("get")
    entry = await store.get(PROBE_KEY)
    if entry is None:
        raise LookupError("probe entry missing after write")
    steps.append("delete")
    await store.delete(PROBE_KEY)
    return entry


@router.get("/uptime")
async def uptime(request: Request, config: SettingsDep) -> Response:
    store = get_cache_store(request)
    headers = {"Cache-Control": NO_STORE}
    if store is None:
        return json_response(
            {"message": "API is up, cache disabled", "storeTest": "skipped"},
            headers=headers,
        )

    probe = {"timestamp": int(time.time() * 1000), "message": "cache store test"}
    steps: list[str] = []
    try:
        entry = await asyncio.wait_for(
            _round_trip(store, orjson.dumps(probe), steps),
            timeout=config.cache_timeout_seconds * 3,
        )
    except Exception as e:
        step = steps[-1] if steps else "put"
        logger.warning(f"Cache store probe failed at {step}: {e!r}")
        return json_response(
            {
                "message": "API is up but the cache store failed",
                "storeTest": "failed",
                "step": step,
            },
            status_code=503,
            headers=headers,
        )

    return json_response(
        {
            "message": "API and cache store are working",
            "storeTest": "passed",
            "testData": orjson.loads(entry.value),
        },
        headers=headers,
    )
