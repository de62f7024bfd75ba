"""Shared fixtures for proxy tests."""

import logging

import pytest

from ebird_proxy.app.core.config import Settings
from ebird_proxy.app.services.ebird_client import EBirdClient
from ebird_proxy.app.services.pipeline import ProxyPipeline

BASE_URL = "https://api.ebird.test/v2"

OBSERVATIONS = [
    {
        "speciesCode": "amerob",
        "comName": "American Robin",
        "sciName": "Turdus migratorius",
        "locId": "L123456",
        "obsDt": "2026-10-16 07:45",
        "howMany": 3,
    },
    {
        "speciesCode": "blujay",
        "comName": "Blue Jay",
        "sciName": "Cyanocitta cristata",
        "locId": "L123456",
        "obsDt": "2026-10-16 08:10",
        "howMany": 1,
    },
]


class FakeClock:
    """Controllable time source returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def proxy_settings() -> Settings:
    # Sweeps are tested explicitly; keep them out of the request flow by default
    return Settings(
        _env_file=None,
        ebird_api_key="test-key",
        ebird_base_url=BASE_URL,
        google_maps_api_key="maps-test-key",
        sweep_probability=0.0,
    )


@pytest.fixture
def make_pipeline(proxy_settings, clock):
    """Factory building a pipeline on the fake clock."""

    def _make(settings: Settings | None = None, **kwargs) -> ProxyPipeline:
        settings = settings or proxy_settings
        fetcher = EBirdClient(
            base_url=settings.ebird_base_url,
            api_key=settings.ebird_api_key,
            timeout=settings.ebird_timeout,
        )
        return ProxyPipeline.from_settings(settings, fetcher, clock=clock, **kwargs)

    return _make


@pytest.fixture
def proxy_log(caplog):
    """caplog wired to the package logger, which does not propagate once configured."""
    logger = logging.getLogger("ebird_proxy")
    logger.addHandler(caplog.handler)
    try:
        yield caplog
    finally:
        logger.removeHandler(caplog.handler)
