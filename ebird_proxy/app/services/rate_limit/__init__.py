"""Per-client rate limiting for the proxy.

Fixed window counters keyed by client address, kept in process memory.
"""

from ebird_proxy.app.services.rate_limit.backends import (
    InMemoryRateLimiter,
    RateLimitBackend,
)
from ebird_proxy.app.services.rate_limit.client_key import (
    UNKNOWN_CLIENT,
    derive_client_key,
)
from ebird_proxy.app.services.rate_limit.models import RateLimitResult, RateRecord

__all__ = [
    # Models
    "RateLimitResult",
    "RateRecord",
    # Backends
    "RateLimitBackend",
    "InMemoryRateLimiter",
    # Client identification
    "UNKNOWN_CLIENT",
    "derive_client_key",
]
