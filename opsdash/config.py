"""Configuration management for opsdash."""

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from opsdash.core.constants import (
    DEFAULT_QUIET_PERIOD,
    DEFAULT_RETRY_BASE_DELAY,
    APIConstants,
    CacheConstants,
    FreshnessConstants,
    PaginationConstants,
    RetryConstants,
)


class Config(BaseSettings):
    """Application configuration."""

    store_url: str | None = Field(
        default=None,
        alias="OPSDASH_STORE_URL",
        description="Base URL of the remote query API (PostgREST style, ending in /rest/v1)",
    )
    store_api_key: SecretStr | None = Field(
        default=None, alias="OPSDASH_STORE_API_KEY", description="API key for the remote store"
    )
    request_timeout: float = Field(
        default=float(APIConstants.REQUEST_TIMEOUT),
        alias="OPSDASH_REQUEST_TIMEOUT",
        description="HTTP timeout in seconds",
    )

    # Result cache
    cache_ttl_seconds: float = Field(
        default=float(CacheConstants.DEFAULT_TTL_SECONDS),
        gt=0,
        alias="OPSDASH_CACHE_TTL_SECONDS",
        description="Lifetime of cached query results",
    )
    cache_dir: Path | None = Field(
        default=None,
        alias="OPSDASH_CACHE_DIR",
        description="Directory for the result cache (temporary directory when unset)",
    )

    # Request coordinator
    max_retries: int = Field(
        default=int(RetryConstants.MAX_RETRIES),
        ge=0,
        alias="OPSDASH_MAX_RETRIES",
        description="Retries after a transport failure",
    )
    retry_base_delay: float = Field(
        default=DEFAULT_RETRY_BASE_DELAY,
        ge=0,
        alias="OPSDASH_RETRY_BASE_DELAY",
        description="Linear backoff unit in seconds (delay = unit * attempt)",
    )

    # Query composition
    quiet_period: float = Field(
        default=DEFAULT_QUIET_PERIOD,
        ge=0,
        alias="OPSDASH_QUIET_PERIOD",
        description="Debounce quiet period in seconds",
    )
    default_page_size: int = Field(
        default=int(PaginationConstants.DEFAULT_PAGE_SIZE),
        gt=0,
        le=int(PaginationConstants.MAX_PAGE_SIZE),
        alias="OPSDASH_DEFAULT_PAGE_SIZE",
    )

    # Freshness badges
    freshness_window_hours: float = Field(
        default=float(FreshnessConstants.DEFAULT_WINDOW_HOURS),
        gt=0,
        alias="OPSDASH_FRESHNESS_WINDOW_HOURS",
        description="Look-back window for badge counts when a section was never marked seen",
    )
    marker_dir: Path = Field(
        default_factory=lambda: Path.home() / ".opsdash" / "markers",
        alias="OPSDASH_MARKER_DIR",
        description="Directory for per-viewer last-seen markers",
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )


def load_config() -> Config:
    """Load configuration from environment and .env file."""
    return Config()
