"""Rate limit backends.

Only an in-memory backend exists: every process keeps its own counters, so
behind N replicas a client effectively gets N times the budget.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable

from ebird_proxy.app.services.rate_limit.models import RateLimitResult, RateRecord


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    @abstractmethod
    async def admit(self, client_key: str) -> RateLimitResult:
        """Count a request for ``client_key`` and decide whether it may proceed.

        Args:
            client_key: Identifier of the caller

        Returns:
            RateLimitResult with allowed status and metadata
        """

    @abstractmethod
    async def sweep(self) -> int:
        """Drop stale records. Returns the number removed."""

    @abstractmethod
    async def size(self) -> int:
        """Number of records currently held."""


class InMemoryRateLimiter(RateLimitBackend):
    """Fixed window rate limiter kept in a dict.

    The counter is incremented before it is compared with the limit, so the
    request that pushes a client over the limit is itself rejected and
    reports ``remaining == 0``. Rejected requests still count.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60,
        grace_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Requests allowed per client per window
            window_seconds: Window length in seconds
            grace_seconds: How long a record outlives its window before a sweep drops it
            clock: Time source returning epoch seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._records: dict[str, RateRecord] = {}
        self._lock = asyncio.Lock()

    async def admit(self, client_key: str) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            record = self._records.get(client_key)
            if record is None:
                record = RateRecord(
                    client_key=client_key,
                    count=0,
                    window_reset_at=now + self.window_seconds,
                )
                self._records[client_key] = record

            # Start a new window once the old one has passed
            if now > record.window_reset_at:
                record.count = 0
                record.window_reset_at = now + self.window_seconds

            record.count += 1

            return RateLimitResult(
                allowed=record.count <= self.max_requests,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - record.count),
                reset_at=record.window_reset_at,
            )

    async def sweep(self) -> int:
        async with self._lock:
            now = self._clock()
            stale = [
                key for key, record in self._records.items()
                if now > record.window_reset_at + self.grace_seconds
            ]
            for key in stale:
                del self._records[key]
            return len(stale)

    async def size(self) -> int:
        async with self._lock:
            return len(self._records)
