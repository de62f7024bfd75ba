import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_ALLOWED_PATHS = [
    "/data/obs/",
    "/ref/hotspot/",
    "/ref/region/",
    "/product/spplist/",
    "/product/checklist/",
    "/product/top100/",
    "/ref/taxonomy/",
]

DEFAULT_CACHE_TTL_RULES = [
    ("/data/obs/", 5 * 60),
    ("/ref/hotspot/", 30 * 60),
    ("/ref/region/", 60 * 60),
    ("/product/spplist/", 60 * 60),
    ("/ref/taxonomy/", 24 * 60 * 60),
]


def _parse_path_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    # JSON is the documented format, but a plain comma separated list is
    # common in deployment dashboards.
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    return [p for p in re.split(r"[,\s]+", raw) if p]


def _parse_ttl_rules(raw: Any) -> list[tuple[str, int]]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return []
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"cache_ttl_rules must be JSON: {e}") from e

    # Objects keep insertion order, so {"prefix": seconds} is as good as pairs.
    if isinstance(raw, dict):
        raw = list(raw.items())

    rules: list[tuple[str, int]] = []
    for item in raw:
        try:
            prefix, seconds = item
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid cache TTL rule: {item!r}") from e
        seconds = int(seconds)
        if seconds < 1:
            raise ValueError(f"Cache TTL for {prefix!r} must be at least 1 second")
        rules.append((str(prefix), seconds))
    return rules


class Settings(BaseSettings):
    """Proxy settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # eBird upstream
    ebird_api_key: str = ""
    ebird_base_url: str = "https://api.ebird.org/v2"

    # HTTP client settings for the upstream call
    ebird_timeout: float = 10.0  # Overall upstream budget in seconds
    httpx_connect_timeout: float = 5.0
    httpx_read_timeout: float = 10.0
    httpx_write_timeout: float = 5.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Allowlist of upstream path prefixes
    allowed_paths: Annotated[list[str], NoDecode] = list(DEFAULT_ALLOWED_PATHS)

    # Response cache settings, first matching prefix wins
    cache_ttl_rules: Annotated[list[tuple[str, int]], NoDecode] = list(
        DEFAULT_CACHE_TTL_RULES
    )
    cache_default_ttl: int = 300  # 5 minutes
    cache_hit_max_age: int = 60
    cache_hit_stale_while_revalidate: int = 300

    # Rate limiting settings (fixed window, per client address)
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 100
    rate_limit_grace_seconds: int = 60  # Records kept this long past their window

    # Chance per upstream fetch of sweeping expired cache entries and rate records
    sweep_probability: float = 0.01

    # CORS
    cors_allow_origin: str = "*"

    # Google Maps key served to the front-end by /api/config
    google_maps_api_key: str = ""

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("allowed_paths", mode="before")
    @classmethod
    def decode_allowed_paths(cls, v: Any) -> list[str]:
        return _parse_path_list(v)

    @field_validator("cache_ttl_rules", mode="before")
    @classmethod
    def decode_cache_ttl_rules(cls, v: Any) -> list[tuple[str, int]]:
        return _parse_ttl_rules(v)

    @field_validator(
        "rate_limit_window_seconds",
        "rate_limit_max_requests",
        "cache_default_ttl",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate window, limit and TTL values are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("rate_limit_grace_seconds", "cache_hit_max_age", "cache_hit_stale_while_revalidate")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @field_validator(
        "ebird_timeout",
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("sweep_probability")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("sweep_probability must be between 0 and 1")
        return v

    @field_validator("ebird_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
