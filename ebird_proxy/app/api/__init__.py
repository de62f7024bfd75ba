"""API endpoints package for the proxy."""

from ebird_proxy.app.api.config import router as config_router
from ebird_proxy.app.api.ebird import router as ebird_router

__all__ = [
    "config_router",
    "ebird_router",
]
