"""Rate limiting data models.

This module contains dataclasses for rate limit state and results.
"""

import math
from dataclasses import dataclass


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def retry_after(self, now: float) -> int:
        """Whole seconds until the window resets, never less than 1."""
        return max(1, math.ceil(self.reset_at - now))


@dataclass
class RateRecord:
    """Fixed window counter for one client key."""
    client_key: str
    count: int
    window_reset_at: float
