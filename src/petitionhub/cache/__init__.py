"""Cache layer for PetitionHub.

Provides the response cache in front of the read endpoints:
- Deterministic request-keyed cache keys grouped by resource namespace
- CacheStore abstraction with Redis and in-memory backends
- TTL expiry (lazy: expired entries are never served)
- Prefix invalidation after writes
"""

from petitionhub.cache.invalidation import InvalidationBroadcaster
from petitionhub.cache.keys import CacheKey, CacheKeys, CacheNamespace, build_key
from petitionhub.cache.redis import RedisCacheStore, close_redis, create_cache_store, get_redis
from petitionhub.cache.response_cache import CacheStatus, ResponseCache
from petitionhub.cache.store import (
    CacheEntry,
    CacheStore,
    InMemoryCacheStore,
    StoreUnavailableError,
)

__all__ = [
    # Keys
    "CacheKey",
    "CacheKeys",
    "CacheNamespace",
    "build_key",
    # Stores
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "StoreUnavailableError",
    "create_cache_store",
    "get_redis",
    "close_redis",
    # Orchestration
    "CacheStatus",
    "ResponseCache",
    "InvalidationBroadcaster",
]
