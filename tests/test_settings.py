import pytest
from pydantic import ValidationError

from ebird_proxy.app.core.config import (
    DEFAULT_ALLOWED_PATHS,
    DEFAULT_CACHE_TTL_RULES,
    Settings,
)


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("EBIRD_API_KEY", raising=False)
    settings = Settings(_env_file=None)

    assert settings.ebird_api_key == ""
    assert settings.ebird_base_url == "https://api.ebird.org/v2"
    assert settings.allowed_paths == DEFAULT_ALLOWED_PATHS
    assert settings.cache_ttl_rules == DEFAULT_CACHE_TTL_RULES
    assert settings.rate_limit_max_requests == 100
    assert settings.rate_limit_window_seconds == 60
    assert settings.sweep_probability == 0.01


def test_api_key_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("EBIRD_API_KEY", "abc123")
    monkeypatch.setenv("EBIRD_BASE_URL", "https://api.ebird.org/v2/")

    settings = Settings(_env_file=None)
    assert settings.ebird_api_key == "abc123"
    assert settings.ebird_base_url == "https://api.ebird.org/v2"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["/data/obs/", "/ref/hotspot/"]', ["/data/obs/", "/ref/hotspot/"]),
        ("/data/obs/,/ref/hotspot/", ["/data/obs/", "/ref/hotspot/"]),
        ("/data/obs/ /ref/taxonomy/", ["/data/obs/", "/ref/taxonomy/"]),
        ("[]", []),
        ("", []),
    ],
)
def test_allowed_paths_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("ALLOWED_PATHS", raw)

    settings = Settings(_env_file=None)
    assert settings.allowed_paths == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('[["/data/obs/", 120], ["/ref/", 600]]', [("/data/obs/", 120), ("/ref/", 600)]),
        ('{"/ref/taxonomy/": 3600, "/data/": 60}', [("/ref/taxonomy/", 3600), ("/data/", 60)]),
        ("", []),
    ],
)
def test_cache_ttl_rules_parsing(monkeypatch, raw: str, expected) -> None:
    monkeypatch.setenv("CACHE_TTL_RULES", raw)

    settings = Settings(_env_file=None)
    assert settings.cache_ttl_rules == expected


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '[["/data/obs/", 0]]',
        '[["/data/obs/"]]',
    ],
)
def test_invalid_cache_ttl_rules_rejected(monkeypatch, raw: str) -> None:
    monkeypatch.setenv("CACHE_TTL_RULES", raw)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("rate_limit_max_requests", 0),
        ("rate_limit_window_seconds", -5),
        ("cache_default_ttl", 0),
        ("rate_limit_grace_seconds", -1),
        ("ebird_timeout", 0),
        ("httpx_read_timeout", -1.0),
        ("sweep_probability", 1.5),
        ("sweep_probability", -0.1),
    ],
)
def test_out_of_range_values_rejected(field: str, value) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_zero_grace_and_zero_sweep_allowed() -> None:
    settings = Settings(_env_file=None, rate_limit_grace_seconds=0, sweep_probability=0.0)
    assert settings.rate_limit_grace_seconds == 0
    assert settings.sweep_probability == 0.0
