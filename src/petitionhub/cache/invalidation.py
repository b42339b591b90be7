"""Prefix-based cache invalidation for PetitionHub.

Mutation handlers call the broadcaster after a successful write and await it
before returning, so a client re-fetching right after the write never sees
the invalidated entries again. Because the cache store is shared by every
instance, deleting from it is visible to all of them.

Invalidation is a best-effort batch of independent deletes. A failing
enumeration or delete is logged and tolerated; any entry left behind still
expires through its TTL.

Example:
    broadcaster = InvalidationBroadcaster(store)
    await broadcaster.invalidate_prefix("petitions:")
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from petitionhub.cache.keys import SEPARATOR, CacheKeys, CacheNamespace
from petitionhub.cache.store import CacheStore, StoreUnavailableError
from petitionhub.observability.metrics import record_invalidation

if TYPE_CHECKING:
    from petitionhub.models import Petition

logger = logging.getLogger(__name__)

_STORE_ERRORS = (StoreUnavailableError, RedisError, OSError, asyncio.TimeoutError)


class InvalidationBroadcaster:
    """Deletes every cached entry under a key prefix.

    The returned counts are for logging only; callers must not branch on them.
    """

    def __init__(self, store: CacheStore | None, timeout: float | None = None):
        self.store = store
        self.timeout = timeout

    async def _bounded(self, awaitable):  # type: ignore[no-untyped-def]
        if self.timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    async def _collect_keys(self, store: CacheStore, prefix: str) -> list[str]:
        return [key async for key in store.scan_prefix(prefix)]

    async def invalidate_prefix(self, prefix: str) -> int:
        """Delete all entries whose key starts with ``prefix``.

        Returns the number of keys deleted. A prefix with no matching keys
        is a no-op.
        """
        if not prefix:
            raise ValueError("Invalidation prefix must be a non-empty string")
        store = self.store
        if store is None:
            return 0

        try:
            keys = await self._bounded(self._collect_keys(store, prefix))
        except _STORE_ERRORS as e:
            logger.warning(f"Cache invalidation of {prefix!r} skipped, enumeration failed: {e}")
            return 0

        if not keys:
            logger.debug(f"Cache invalidation: no keys under {prefix!r}")
            return 0

        results = await asyncio.gather(
            *(self._bounded(store.delete(key)) for key in keys),
            return_exceptions=True,
        )

        deleted = 0
        failed = 0
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                if not isinstance(result, _STORE_ERRORS):
                    raise result
                failed += 1
                logger.warning(f"Cache invalidation failed for key {key!r}: {result}")
            elif result:
                deleted += 1

        record_invalidation(prefix.split(SEPARATOR, 1)[0], deleted)
        if failed:
            logger.warning(
                f"Cache invalidation of {prefix!r} partial: {deleted} deleted, {failed} failed"
            )
        else:
            logger.info(f"Cache invalidation of {prefix!r}: {deleted} keys deleted")
        return deleted

    async def invalidate(self, *prefixes: str) -> int:
        """Invalidate several prefixes in order; returns the total deleted."""
        total = 0
        for prefix in prefixes:
            total += await self.invalidate_prefix(prefix)
        return total

    # Convenience methods for the mutation endpoints

    async def petition_created(self, creator_id: str | int | None = None) -> int:
        """A new petition appears in the collection listings."""
        deleted = await self.invalidate_prefix(
            CacheKeys.namespace_prefix(CacheNamespace.PETITIONS)
        )
        if creator_id is not None:
            deleted += await self.user_petitions_changed(creator_id)
        return deleted

    async def petition_published(self, petition: Petition) -> int:
        """Status changes are visible in listings and every detail view."""
        deleted = await self.invalidate(
            CacheKeys.namespace_prefix(CacheNamespace.PETITIONS),
            CacheKeys.namespace_prefix(CacheNamespace.PETITION),
        )
        return deleted + await self.user_petitions_changed(petition.created_by)

    async def user_petitions_changed(self, user_id: str | int) -> int:
        """Drop the cached list of petitions created by one user."""
        return await self.invalidate_prefix(
            CacheKeys.resource_prefix(CacheNamespace.USER_PETITIONS, user_id)
        )

    async def petition_updated(self, petition: Petition) -> int:
        return await self.petition_published(petition)

    async def signature_created(self, user_id: str | int, petition: Petition) -> int:
        """Refresh the signer's signature list and the petition's counts."""
        prefixes = [CacheKeys.resource_prefix(CacheNamespace.USER_SIGNATURES, user_id)]
        if petition.slug:
            prefixes.append(CacheKeys.resource_prefix(CacheNamespace.PETITION, petition.slug))
        # Listings and /petitions/{id} carry current_count as well
        prefixes.append(CacheKeys.namespace_prefix(CacheNamespace.PETITIONS))
        return await self.invalidate(*prefixes)

    async def category_created(self) -> int:
        return await self.invalidate(CacheKeys.namespace_prefix(CacheNamespace.CATEGORIES))