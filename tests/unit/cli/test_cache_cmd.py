"""Tests for the cache CLI commands."""

import pytest

from petitionhub.cache.keys import build_key
from petitionhub.cache.store import InMemoryCacheStore
from petitionhub.cli import cache_cmd
from petitionhub.observability.logging import request_id_var


class RecordingStore(InMemoryCacheStore):
    """Remembers the request id seen while deleting."""

    def __init__(self) -> None:
        super().__init__()
        self.request_ids: list[str] = []
        self.closed = False

    async def delete(self, key: str) -> bool:
        self.request_ids.append(request_id_var.get())
        return await super().delete(key)

    async def close(self) -> None:
        self.closed = True


class TestInvalidateCommand:
    """Test `petitionhub cache invalidate`."""

    @pytest.mark.asyncio
    async def test_deletes_under_prefixes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        store = RecordingStore()
        await store.put(build_key("GET", "/api/petitions"), b"[]", 60)
        await store.put(build_key("GET", "/api/categories"), b"[]", 60)

        async def fake_create(config: object) -> RecordingStore:
            return store

        monkeypatch.setattr(cache_cmd, "create_cache_store", fake_create)

        deleted = await cache_cmd._invalidate(["petitions:"])

        assert deleted == 1
        assert len(store) == 1
        assert store.request_ids == ["cli-invalidate"]
        assert store.closed
