"""Tests for the Redis-backed cache store (mocked client)."""

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest
from conftest import FakeClock
from redis.exceptions import ConnectionError as RedisConnectionError

from petitionhub.cache.redis import (
    RedisCacheStore,
    create_cache_store,
    decode_envelope,
    encode_envelope,
    escape_pattern,
)
from petitionhub.cache.store import CacheStore, InMemoryCacheStore, StoreUnavailableError
from petitionhub.config import Settings


def _scan_results(*keys: bytes) -> MagicMock:
    async def scan_iter(**kwargs: object) -> AsyncIterator[bytes]:
        for key in keys:
            yield key

    return MagicMock(side_effect=scan_iter)


@pytest.fixture
def redis_client() -> AsyncMock:
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    return client


@pytest.fixture
def redis_store(redis_client: AsyncMock, clock: FakeClock) -> RedisCacheStore:
    return RedisCacheStore(redis_client, clock=clock)


class TestEnvelope:
    """Test the stored value envelope."""

    def test_envelope_preserves_bytes_and_metadata(self) -> None:
        """Arbitrary bytes survive the JSON envelope."""
        raw = encode_envelope(b"\x00\xffpayload", 123.5, 60)
        entry = decode_envelope("k", raw)
        assert entry.value == b"\x00\xffpayload"
        assert entry.stored_at == 123.5
        assert entry.ttl_seconds == 60

    def test_escape_pattern(self) -> None:
        """Glob characters in a prefix match literally."""
        assert escape_pattern("petition:a*b?[c]:") == r"petition:a\*b\?\[c\]:"


class TestRedisCacheStore:
    """Test RedisCacheStore against a mocked client."""

    def test_satisfies_protocol(self, redis_store: RedisCacheStore) -> None:
        """Store implements the CacheStore protocol."""
        assert isinstance(redis_store, CacheStore)

    @pytest.mark.asyncio
    async def test_put_sets_expiry(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock, clock: FakeClock
    ) -> None:
        """put() writes an envelope with a Redis-side expiry."""
        await redis_store.put("categories:@list::GET:", b"[]", 300)

        redis_client.set.assert_awaited_once()
        args, kwargs = redis_client.set.call_args
        assert args[0] == "categories:@list::GET:"
        assert kwargs["ex"] == 300
        assert orjson.loads(args[1])["stored_at"] == clock.now

    @pytest.mark.asyncio
    async def test_zero_ttl_skips_write(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock
    ) -> None:
        """TTL 0 never reaches Redis."""
        await redis_store.put("k", b"v", 0)
        redis_client.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_hit(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock, clock: FakeClock
    ) -> None:
        """A live envelope is decoded into an entry."""
        redis_client.get.return_value = encode_envelope(b"[1]", clock.now, 120)
        entry = await redis_store.get("user-signatures:7::GET:")
        assert entry is not None
        assert entry.value == b"[1]"

    @pytest.mark.asyncio
    async def test_get_applies_lazy_expiry(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock, clock: FakeClock
    ) -> None:
        """An envelope at its TTL boundary is a miss even if Redis still holds it."""
        redis_client.get.return_value = encode_envelope(b"[1]", clock.now - 120, 120)
        assert await redis_store.get("k") is None

    @pytest.mark.asyncio
    async def test_get_corrupt_value_is_miss(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock
    ) -> None:
        """Foreign values are treated as a miss."""
        redis_client.get.return_value = b"not json"
        assert await redis_store.get("k") is None

    @pytest.mark.asyncio
    async def test_errors_become_store_unavailable(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock
    ) -> None:
        """Connection failures surface as StoreUnavailableError."""
        redis_client.get.side_effect = RedisConnectionError("refused")
        redis_client.set.side_effect = OSError("reset")
        redis_client.delete.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreUnavailableError):
            await redis_store.get("k")
        with pytest.raises(StoreUnavailableError):
            await redis_store.put("k", b"v", 60)
        with pytest.raises(StoreUnavailableError):
            await redis_store.delete("k")

    @pytest.mark.asyncio
    async def test_delete_reports_existence(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock
    ) -> None:
        """delete() is True only when Redis removed a key."""
        assert await redis_store.delete("k") is True
        redis_client.delete.return_value = 0
        assert await redis_store.delete("k") is False

    @pytest.mark.asyncio
    async def test_scan_prefix_decodes_keys(
        self, redis_store: RedisCacheStore, redis_client: AsyncMock
    ) -> None:
        """SCAN is issued with an escaped MATCH pattern and keys are decoded."""
        redis_client.scan_iter = _scan_results(b"petition:a::GET:", b"petition:b::GET:")

        keys = [key async for key in redis_store.scan_prefix("petition:")]

        assert keys == ["petition:a::GET:", "petition:b::GET:"]
        assert redis_client.scan_iter.call_args.kwargs["match"] == "petition:*"

    @pytest.mark.asyncio
    async def test_ping(self, redis_store: RedisCacheStore, redis_client: AsyncMock) -> None:
        """Ping reports False instead of raising."""
        assert await redis_store.ping() is True
        redis_client.ping.side_effect = RedisConnectionError("down")
        assert await redis_store.ping() is False


class TestCreateCacheStore:
    """Test backend selection."""

    @pytest.mark.asyncio
    async def test_memory_backend(self) -> None:
        """The memory backend needs no connection."""
        store = await create_cache_store(Settings(_env_file=None, cache_backend="memory"))
        assert isinstance(store, InMemoryCacheStore)

    @pytest.mark.asyncio
    async def test_unknown_backend(self) -> None:
        """Unknown backends are rejected."""
        with pytest.raises(ValueError):
            await create_cache_store(Settings(_env_file=None, cache_backend="memcached"))
