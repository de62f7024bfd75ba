"""Request mediation pipeline.

Every proxied request goes through the same ordered steps, stopping at the
first one that produces a response:

1. method check (OPTIONS preflight short-circuits, anything but GET is 405)
2. endpoint parameter presence
3. allowlist (decode, then prefix match)
4. per-client rate limit
5. upstream credential configured
6. cache lookup
7. upstream fetch
8. cache write and probabilistic sweep

Each step either returns a ``ProxyResponse`` or raises a ``ProxyError``; the
pipeline converts errors to JSON bodies at its boundary so callers always
receive a structured response.
"""

import math
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from ebird_proxy.app.core.cache import CacheStore, InMemoryCacheStore
from ebird_proxy.app.core.config import Settings
from ebird_proxy.app.core.logging import get_log_context, get_logger
from ebird_proxy.app.exceptions import (
    ConfigurationError,
    MethodNotAllowedError,
    MissingParameterError,
    ProxyError,
    RateLimitedError,
)
from ebird_proxy.app.services.allowlist import AllowlistValidator
from ebird_proxy.app.services.ebird_client import EBirdClient
from ebird_proxy.app.services.rate_limit import (
    InMemoryRateLimiter,
    RateLimitBackend,
    RateLimitResult,
    derive_client_key,
)
from ebird_proxy.app.services.ttl_policy import TTLPolicy

logger = get_logger(__name__)

CACHE_HIT = "HIT"
CACHE_MISS = "MISS"


@dataclass
class ProxyRequest:
    """The parts of an inbound HTTP request the pipeline looks at."""
    method: str
    # Every value of the ``endpoint`` query parameter, as decoded by the server
    endpoint_values: list[str] = field(default_factory=list)
    headers: Mapping[str, str] = field(default_factory=dict)
    client_host: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class ProxyResponse:
    """Framework-independent response produced by the pipeline."""
    status_code: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    # True for the preflight, which carries no body at all
    empty: bool = False

    @property
    def cache_status(self) -> Optional[str]:
        return self.headers.get("X-Cache")


class ProxyPipeline:
    """Composes allowlist, rate limiter, cache, TTL policy and upstream client.

    The stores are injected so they can be replaced (or shared) without
    touching the request flow. Nothing here locks across the upstream call:
    two concurrent misses for the same path both fetch, and the later write
    wins.
    """

    def __init__(
        self,
        validator: AllowlistValidator,
        rate_limiter: RateLimitBackend,
        cache: CacheStore,
        ttl_policy: TTLPolicy,
        fetcher: EBirdClient,
        *,
        cors_allow_origin: str = "*",
        hit_max_age: int = 60,
        hit_stale_while_revalidate: int = 300,
        sweep_probability: float = 0.01,
        clock: Callable[[], float] = time.time,
        random_source: Callable[[], float] = random.random,
    ):
        self.validator = validator
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.ttl_policy = ttl_policy
        self.fetcher = fetcher
        self.cors_allow_origin = cors_allow_origin
        self.hit_max_age = hit_max_age
        self.hit_stale_while_revalidate = hit_stale_while_revalidate
        self.sweep_probability = sweep_probability
        self._clock = clock
        self._random = random_source

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetcher: EBirdClient,
        *,
        clock: Callable[[], float] = time.time,
        random_source: Callable[[], float] = random.random,
    ) -> "ProxyPipeline":
        """Build a pipeline with in-memory stores configured from settings."""
        return cls(
            validator=AllowlistValidator(settings.allowed_paths),
            rate_limiter=InMemoryRateLimiter(
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
                grace_seconds=settings.rate_limit_grace_seconds,
                clock=clock,
            ),
            cache=InMemoryCacheStore(clock=clock),
            ttl_policy=TTLPolicy(settings.cache_ttl_rules, settings.cache_default_ttl),
            fetcher=fetcher,
            cors_allow_origin=settings.cors_allow_origin,
            hit_max_age=settings.cache_hit_max_age,
            hit_stale_while_revalidate=settings.cache_hit_stale_while_revalidate,
            sweep_probability=settings.sweep_probability,
            clock=clock,
            random_source=random_source,
        )

    def _cors_headers(self) -> dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.cors_allow_origin,
            "Access-Control-Allow-Methods": "GET, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        }

    @staticmethod
    def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(math.ceil(result.reset_at)),
        }

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        """Run one request through the pipeline.

        Never raises ``ProxyError``; every failure becomes a JSON error
        response with the matching status code.
        """
        started = time.perf_counter()
        headers = self._cors_headers()
        try:
            response = await self._process(request, headers)
        except ProxyError as exc:
            headers["Cache-Control"] = "no-store"
            if isinstance(exc, RateLimitedError):
                headers["Retry-After"] = str(exc.retry_after)
            response = ProxyResponse(exc.status_code, exc.to_response(), headers)

        logger.info(
            "Proxy request completed",
            extra=get_log_context(
                request_id=request.request_id,
                method=request.method,
                status_code=response.status_code,
                cache_status=response.cache_status,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            ),
        )
        return response

    async def _process(self, request: ProxyRequest, headers: dict[str, str]) -> ProxyResponse:
        method = request.method.upper()
        if method == "OPTIONS":
            headers["Cache-Control"] = "no-store"
            return ProxyResponse(200, headers=headers, empty=True)
        if method != "GET":
            raise MethodNotAllowedError(method)

        # Repeated parameters arrive as several values; only a single string is usable
        if len(request.endpoint_values) != 1 or not request.endpoint_values[0]:
            raise MissingParameterError()

        path = self.validator.validate(request.endpoint_values[0])

        client_key = derive_client_key(request.headers, request.client_host)
        result = await self.rate_limiter.admit(client_key)
        headers.update(self._rate_limit_headers(result))
        if not result.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra=get_log_context(
                    request_id=request.request_id, client_key=client_key, endpoint=path
                ),
            )
            raise RateLimitedError(result.retry_after(self._clock()))

        if not self.fetcher.has_credential:
            logger.error(
                "EBIRD_API_KEY not set in environment variables",
                extra=get_log_context(request_id=request.request_id, fault="configuration"),
            )
            raise ConfigurationError()

        entry = await self.cache.get(path)
        if entry is not None:
            logger.debug(
                "Cache hit",
                extra=get_log_context(request_id=request.request_id, endpoint=path),
            )
            headers["X-Cache"] = CACHE_HIT
            headers["Cache-Control"] = (
                f"s-maxage={self.hit_max_age}, "
                f"stale-while-revalidate={self.hit_stale_while_revalidate}"
            )
            return ProxyResponse(200, entry.payload, headers)

        payload = await self.fetcher.fetch(path)

        ttl = self.ttl_policy.ttl_for(path)
        await self.cache.put(path, payload, ttl)
        await self._maybe_sweep()

        headers["X-Cache"] = CACHE_MISS
        headers["Cache-Control"] = f"s-maxage={ttl}, stale-while-revalidate={ttl * 2}"
        return ProxyResponse(200, payload, headers)

    async def _maybe_sweep(self) -> None:
        if self._random() >= self.sweep_probability:
            return
        await self.sweep()

    async def sweep(self) -> tuple[int, int]:
        """Drop expired cache entries and stale rate records.

        Returns:
            (cache entries removed, rate records removed)
        """
        removed_entries = await self.cache.sweep()
        removed_records = await self.rate_limiter.sweep()
        logger.debug(
            "Swept proxy state",
            extra={"cache_removed": removed_entries, "rate_records_removed": removed_records},
        )
        return removed_entries, removed_records
