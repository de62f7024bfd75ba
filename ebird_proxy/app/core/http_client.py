"""Shared HTTP client for upstream calls.

The client is created once in the application lifespan and reused by every
request so connections to eBird are pooled.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from ebird_proxy.app.core.config import Settings, settings as default_settings


_shared_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """Get the shared HTTP client instance.

    Raises:
        RuntimeError: If the HTTP client has not been initialized.
    """
    if _shared_http_client is None:
        raise RuntimeError(
            "HTTP client not initialized. Ensure lifespan context is active."
        )
    return _shared_http_client


def build_timeout(settings: Settings) -> httpx.Timeout:
    """Granular timeouts, each capped by the overall upstream budget."""
    budget = settings.ebird_timeout
    return httpx.Timeout(
        connect=min(settings.httpx_connect_timeout, budget),
        read=min(settings.httpx_read_timeout, budget),
        write=min(settings.httpx_write_timeout, budget),
        pool=min(settings.httpx_pool_timeout, budget),
    )


def create_http_client(settings: Settings | None = None) -> httpx.AsyncClient:
    """Create a new HTTP client configured from settings.

    The caller owns the returned client and must close it.
    """
    settings = settings or default_settings
    limits = httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )
    return httpx.AsyncClient(timeout=build_timeout(settings), limits=limits)


@asynccontextmanager
async def init_http_client(
    settings: Settings | None = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    Use it in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client():
                yield
    """
    global _shared_http_client

    _shared_http_client = create_http_client(settings)

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None
