"""Core utilities for the proxy application."""

from ebird_proxy.app.core.cache import CacheEntry, CacheStore, InMemoryCacheStore
from ebird_proxy.app.core.config import Settings, settings
from ebird_proxy.app.core.http_client import get_http_client, init_http_client
from ebird_proxy.app.core.logging import get_logger, setup_logging

__all__ = [
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "Settings",
    "settings",
    "get_http_client",
    "init_http_client",
    "get_logger",
    "setup_logging",
]
