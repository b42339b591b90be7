"""Cache store abstraction for PetitionHub.

A CacheStore is a process-external key-value store with per-entry TTL,
prefix enumeration and best-effort semantics. Handlers receive it through
the application state, never through a module-level singleton, so tests can
substitute InMemoryCacheStore with a controlled clock.

Expiry rule: an entry is expired once ``now - stored_at >= ttl_seconds``.
An entry stored with TTL T is served at T - 1 and treated as a miss at T.
Expired entries may still physically exist (lazy expiry) but are never
returned.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

Clock = Callable[[], float]


class StoreUnavailableError(Exception):
    """The cache store could not be reached or answered with an error.

    Never surfaced to clients: callers degrade to direct computation.
    """


@dataclass(frozen=True)
class CacheEntry:
    """A stored value with its insertion time and TTL."""

    key: str
    value: bytes
    stored_at: float
    ttl_seconds: int

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl_seconds

    def remaining(self, now: float) -> int:
        """Whole seconds left before expiry (never negative)."""
        return max(0, int(self.stored_at + self.ttl_seconds - now))


def validate_ttl(ttl_seconds: int) -> None:
    if ttl_seconds < 0:
        raise ValueError(f"ttl_seconds must be non-negative, got {ttl_seconds}")


@runtime_checkable
class CacheStore(Protocol):
    """Async key-value store with TTL and prefix enumeration."""

    async def get(self, key: str) -> CacheEntry | None: ...

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> bool: ...

    def scan_prefix(self, prefix: str) -> AsyncIterator[str]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class InMemoryCacheStore:
    """Dict-backed CacheStore for tests and single-process development.

    The clock is injectable so TTL boundaries can be tested without sleeping.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self.clock()):
            return None
        return entry

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        validate_ttl(ttl_seconds)
        if ttl_seconds == 0:
            return
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            stored_at=self.clock(),
            ttl_seconds=ttl_seconds,
        )

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def scan_prefix(self, prefix: str) -> AsyncIterator[str]:
        # Snapshot so callers may delete while iterating
        for key in [k for k in self._entries if k.startswith(prefix)]:
            yield key

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()
