"""Services package for the proxy.

This package provides:
- Path allowlisting
- Per-client rate limiting
- Cache TTL policy
- The eBird upstream client
- The request pipeline composing all of the above
"""

from ebird_proxy.app.services.allowlist import AllowlistValidator, percent_decode
from ebird_proxy.app.services.rate_limit import (
    InMemoryRateLimiter,
    RateLimitBackend,
    RateLimitResult,
    RateRecord,
    derive_client_key,
)
from ebird_proxy.app.services.ttl_policy import TTLPolicy
from ebird_proxy.app.services.ebird_client import EBirdClient
from ebird_proxy.app.services.pipeline import (
    ProxyPipeline,
    ProxyRequest,
    ProxyResponse,
)

__all__ = [
    # Allowlist
    "AllowlistValidator",
    "percent_decode",
    # Rate limiting
    "InMemoryRateLimiter",
    "RateLimitBackend",
    "RateLimitResult",
    "RateRecord",
    "derive_client_key",
    # Caching policy
    "TTLPolicy",
    # Upstream
    "EBirdClient",
    # Pipeline
    "ProxyPipeline",
    "ProxyRequest",
    "ProxyResponse",
]
