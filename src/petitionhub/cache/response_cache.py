"""Request-keyed response cache for the PetitionHub read endpoints.

Flow for a GET request:
1. Build the cache key from method, path and sorted query parameters
2. Look the key up in the CacheStore (bounded by a timeout)
3. Hit: serve the stored bytes with ``X-Cache: HIT`` and the remaining TTL
4. Miss: await ``compute_fresh()``; store the serialized payload with the
   endpoint TTL and serve it with ``X-Cache: MISS``
5. ``compute_fresh()`` failure: nothing is stored, the error response is
   built by ErrorResponseBuilder and tagged ``X-Cache: BYPASS``

Non-GET requests never touch the store. The cache is best effort: any store
failure or timeout is logged, counted and degrades to direct computation
tagged ``X-Cache: BYPASS``.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from petitionhub.api.errors import ErrorResponseBuilder
from petitionhub.api.middleware.cors import request_cors_headers
from petitionhub.api.responses import dump_payload, json_bytes_response
from petitionhub.cache.keys import DEFAULT_API_PREFIX, CacheKey
from petitionhub.cache.store import CacheEntry, CacheStore, Clock, validate_ttl
from petitionhub.observability.metrics import record_cache_outcome, record_cache_store_error

logger = logging.getLogger(__name__)

CACHEABLE_METHODS = frozenset({"GET"})

CACHE_HEADER = "X-Cache"
CACHE_TTL_HEADER = "X-Cache-TTL"

ComputeFresh = Callable[[], Awaitable[Any]]


class CacheStatus(str, Enum):
    """Cache state reported to clients in the X-Cache header."""

    HIT = "HIT"
    MISS = "MISS"
    BYPASS = "BYPASS"


def generate_etag(body: bytes) -> str:
    """Strong ETag from the serialized payload."""
    return f'"{hashlib.sha256(body).hexdigest()}"'


def _etag_matches(if_none_match: str | None, etag: str) -> bool:
    if not if_none_match:
        return False
    candidates = {tag.strip() for tag in if_none_match.split(",")}
    return "*" in candidates or etag in candidates or etag.strip('"') in candidates


class ResponseCache:
    """Cache-aside orchestration between handlers and the CacheStore."""

    def __init__(
        self,
        store: CacheStore | None,
        errors: ErrorResponseBuilder | None = None,
        timeout: float | None = 0.25,
        clock: Clock | None = None,
        api_prefix: str = DEFAULT_API_PREFIX,
    ):
        self.store = store
        self.errors = errors or ErrorResponseBuilder()
        self.timeout = timeout
        self.clock = clock or getattr(store, "clock", time.time)
        self.api_prefix = api_prefix

    async def _bounded(self, awaitable):  # type: ignore[no-untyped-def]
        if self.timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    # -------------------------------------------------------------------------
    # Store access (never raises)
    # -------------------------------------------------------------------------

    async def _lookup(self, store: CacheStore, key: str) -> tuple[CacheEntry | None, bool]:
        """Return (entry, store_ok). A failed lookup reports store_ok=False."""
        try:
            entry = await self._bounded(store.get(key))
        except Exception as e:
            record_cache_store_error("get")
            logger.warning(f"Cache lookup failed for {key!r}, serving uncached: {e!r}")
            return None, False

        if entry is not None and entry.is_expired(self.clock()):
            return None, True
        return entry, True

    async def _save(self, store: CacheStore, key: str, body: bytes, ttl_seconds: int) -> None:
        try:
            await self._bounded(store.put(key, body, ttl_seconds))
        except Exception as e:
            record_cache_store_error("put")
            logger.warning(f"Cache write failed for {key!r}: {e!r}")

    # -------------------------------------------------------------------------
    # Response construction
    # -------------------------------------------------------------------------

    def _success(
        self,
        request: Request,
        body: bytes,
        status: CacheStatus,
        ttl_seconds: int | None = None,
    ) -> Response:
        headers = request_cors_headers(request)
        headers[CACHE_HEADER] = status.value

        etag = generate_etag(body)
        headers["ETag"] = etag
        if ttl_seconds is None:
            headers["Cache-Control"] = "no-cache"
        else:
            headers[CACHE_TTL_HEADER] = str(ttl_seconds)
            headers["Cache-Control"] = f"public, max-age={ttl_seconds}"

        if _etag_matches(request.headers.get("if-none-match"), etag):
            return Response(status_code=304, headers=headers)
        return json_bytes_response(body, headers=headers)

    def _error(self, request: Request, error: Exception) -> Response:
        response = self.errors.build(error, headers=request_cors_headers(request))
        response.headers[CACHE_HEADER] = CacheStatus.BYPASS.value
        return response

    async def _compute(self, request: Request, compute_fresh: ComputeFresh) -> bytes | Response:
        """Run the producer; returns the serialized body, or a finished response."""
        try:
            payload = await compute_fresh()
        except Exception as e:
            return self._error(request, e)

        if isinstance(payload, Response):
            return payload
        return dump_payload(payload)

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def handle(
        self,
        request: Request,
        compute_fresh: ComputeFresh,
        ttl_seconds: int,
    ) -> Response:
        """Serve ``request`` from the cache or from ``compute_fresh()``.

        Args:
            request: Inbound request; only GET is cached
            compute_fresh: Producer for the payload; may raise any API error
            ttl_seconds: Lifetime of a stored entry, chosen per endpoint

        Returns:
            A JSON response tagged with the cache state.
        """
        validate_ttl(ttl_seconds)

        store = self.store
        if request.method not in CACHEABLE_METHODS or store is None:
            return await self._bypass(request, compute_fresh)

        cache_key = CacheKey.from_request(
            request.method, request.url.path, request.query_params, self.api_prefix
        )
        key = str(cache_key)

        entry, store_ok = await self._lookup(store, key)
        if entry is not None:
            record_cache_outcome(cache_key.namespace, "hit")
            logger.debug(f"Cache HIT for {key!r}")
            return self._success(
                request, entry.value, CacheStatus.HIT, entry.remaining(self.clock())
            )

        body = await self._compute(request, compute_fresh)
        if isinstance(body, Response):
            record_cache_outcome(cache_key.namespace, "bypass")
            if CACHE_HEADER not in body.headers:
                body.headers[CACHE_HEADER] = CacheStatus.BYPASS.value
            return body

        if not store_ok:
            record_cache_outcome(cache_key.namespace, "degraded")
            return self._success(request, body, CacheStatus.BYPASS)

        await self._save(store, key, body, ttl_seconds)
        record_cache_outcome(cache_key.namespace, "miss")
        logger.debug(f"Cache MISS for {key!r}, stored for {ttl_seconds}s")
        return self._success(request, body, CacheStatus.MISS, ttl_seconds)

    async def _bypass(self, request: Request, compute_fresh: ComputeFresh) -> Response:
        body = await self._compute(request, compute_fresh)
        if isinstance(body, Response):
            return body
        headers = request_cors_headers(request)
        headers[CACHE_HEADER] = CacheStatus.BYPASS.value
        headers["Cache-Control"] = "no-store"
        return json_bytes_response(body, headers=headers)
