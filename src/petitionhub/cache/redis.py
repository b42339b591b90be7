"""Redis cache store for PetitionHub.

Provides async Redis operations for cached response payloads.
Uses redis-py async client for connection pooling.
"""

from __future__ import annotations

import base64
import re
import time
from collections.abc import AsyncIterator, Awaitable
from typing import TYPE_CHECKING, cast

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError

from petitionhub.cache.store import (
    CacheEntry,
    CacheStore,
    Clock,
    InMemoryCacheStore,
    StoreUnavailableError,
    validate_ttl,
)
from petitionhub.config import Settings, settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

# Module-level connection pool
_redis_client: Redis | None = None

# Characters with special meaning in a Redis SCAN MATCH pattern
_GLOB_CHARS = re.compile(r"([\\*?\[\]])")


async def get_redis(url: str | None = None) -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            url or settings.redis_url,
            encoding="utf-8",
            decode_responses=False,  # We're storing bytes
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def escape_pattern(prefix: str) -> str:
    """Escape glob metacharacters so a prefix matches literally in SCAN."""
    return _GLOB_CHARS.sub(r"\\\1", prefix)


def encode_envelope(value: bytes, stored_at: float, ttl_seconds: int) -> bytes:
    """Wrap a payload with the metadata needed for lazy expiry."""
    return orjson.dumps(
        {
            "stored_at": stored_at,
            "ttl_seconds": ttl_seconds,
            "value": base64.b64encode(value).decode("ascii"),
        }
    )


def decode_envelope(key: str, raw: bytes) -> CacheEntry:
    parsed = orjson.loads(raw)
    return CacheEntry(
        key=key,
        value=base64.b64decode(parsed["value"]),
        stored_at=float(parsed["stored_at"]),
        ttl_seconds=int(parsed["ttl_seconds"]),
    )


class RedisCacheStore:
    """CacheStore backed by Redis.

    Redis evicts entries itself via ``SET ... EX``; reads still apply the
    lazy expiry rule from the stored envelope so behaviour at the TTL
    boundary matches InMemoryCacheStore. All Redis and socket failures are
    raised as StoreUnavailableError.
    """

    def __init__(self, client: Redis, clock: Clock = time.time, scan_count: int = 100):
        self.client = client
        self.clock = clock
        self.scan_count = scan_count

    async def get(self, key: str) -> CacheEntry | None:
        try:
            raw = await self.client.get(key)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"GET failed: {e}") from e

        if raw is None:
            return None

        try:
            entry = decode_envelope(key, raw)
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError):
            # Foreign or corrupt value; treat as a miss and let put() overwrite it
            return None

        if entry.is_expired(self.clock()):
            return None
        return entry

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        validate_ttl(ttl_seconds)
        if ttl_seconds == 0:
            return
        envelope = encode_envelope(value, self.clock(), ttl_seconds)
        try:
            await self.client.set(key, envelope, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"SET failed: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.client.delete(key))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"DEL failed: {e}") from e

    async def scan_prefix(self, prefix: str) -> AsyncIterator[str]:
        # Use SCAN to avoid blocking on large keyspaces
        pattern = f"{escape_pattern(prefix)}*"
        try:
            async for key in self.client.scan_iter(match=pattern, count=self.scan_count):
                yield key.decode() if isinstance(key, bytes) else key
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(f"SCAN failed: {e}") from e

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        if self.client is _redis_client:
            await close_redis()
        else:
            await self.client.aclose()


async def create_cache_store(config: Settings | None = None) -> CacheStore:
    """Build the configured cache store backend."""
    config = config or settings
    if config.cache_backend == "memory":
        return InMemoryCacheStore()
    if config.cache_backend == "redis":
        return RedisCacheStore(await get_redis(config.redis_url))
    raise ValueError(f"Unknown cache backend: {config.cache_backend!r}")
