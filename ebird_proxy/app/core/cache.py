"""Response cache for upstream payloads.

Maps a normalized upstream path to the decoded JSON payload eBird returned
for it. Entries are advisory: losing them is equivalent to a cold start.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable
import asyncio
import time


Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """A cached upstream payload with its absolute expiry time."""

    key: str
    payload: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired at ``now``."""
        return now >= self.expires_at


class CacheStore(ABC):
    """Abstract base class for response cache stores.

    Implementations must be total: no operation raises for a missing or
    expired key.
    """

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve a live entry from the cache.

        Args:
            key: Normalized upstream path.

        Returns:
            The entry, or None if not found or expired.
        """

    @abstractmethod
    async def put(self, key: str, payload: Any, ttl: float) -> CacheEntry:
        """Create or replace the entry for ``key``.

        Args:
            key: Normalized upstream path.
            payload: Decoded upstream body.
            ttl: Time-to-live in seconds.

        Returns:
            The stored entry.
        """

    @abstractmethod
    async def sweep(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """

    @abstractmethod
    async def size(self) -> int:
        """Number of entries physically held, expired ones included."""

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from the cache."""


class InMemoryCacheStore(CacheStore):
    """In-memory cache store with lazy expiry.

    Expired entries are never returned by ``get`` but stay in memory until a
    sweep removes them. Data is per process and lost on restart.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self._data: dict[str, CacheEntry] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> CacheEntry | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None or entry.is_expired(self._clock()):
                return None
            return entry

    async def put(self, key: str, payload: Any, ttl: float) -> CacheEntry:
        async with self._lock:
            entry = CacheEntry(key=key, payload=payload, expires_at=self._clock() + ttl)
            self._data[key] = entry
            return entry

    async def sweep(self) -> int:
        async with self._lock:
            now = self._clock()
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._data[key]
            return len(expired_keys)

    async def size(self) -> int:
        async with self._lock:
            return len(self._data)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()
