"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]
DebridServiceName = Literal["premiumize", "realdebrid"]


class IndexerConfig(BaseModel):
    """One torrent indexer backend (``GET {base_url}/api/search``)."""

    name: str = Field(description="Display name, shown as the stream source.")
    base_url: str = Field(description="Base URL without trailing /api/search.")
    enabled: bool = Field(default=True)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StremioConfig(BaseModel):
    """Configuration for the addon, aggregation timeouts and stream ranking.

    All values configurable via YAML (stremio section) or ENV vars.
    """

    addon_name: str = Field(
        default="Magnetarr",
        description="Addon name shown in the last column of each stream name.",
    )
    base_url: str | None = Field(
        default=None,
        description=(
            "Public base URL used to build resolve links. "
            "If unset, derived from the incoming request."
        ),
    )

    indexer_timeout_seconds: float = Field(
        default=8.0,
        description="Per-indexer search timeout in seconds.",
    )
    search_timeout_seconds: float = Field(
        default=12.0,
        description="Overall indexer fan-out timeout in seconds.",
    )
    provider_timeout_seconds: float = Field(
        default=20.0,
        description="Per-provider cache check timeout in seconds.",
    )
    probe_timeout_seconds: float = Field(
        default=30.0,
        description="Overall cache check timeout across all providers.",
    )
    resolve_attempt_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout for one (provider, magnet) resolve attempt.",
    )

    triage_reference_mb: float = Field(
        default=5000.0,
        description="Reference size for pre-probe triage ordering (MB).",
    )
    max_probe_candidates: int = Field(
        default=100,
        description="Max candidates submitted to cache checks (top-triaged first).",
    )
    max_results: int = Field(
        default=50,
        description="Max streams returned to the client.",
    )
    size_bands_mb: dict[int, tuple[float, float]] = Field(
        default={
            2160: (10_000.0, 80_000.0),
            1080: (2_000.0, 16_000.0),
            720: (1_000.0, 8_000.0),
            480: (500.0, 4_000.0),
        },
        description="Ideal (min, max) size band in MB per quality tier.",
    )

    stream_cache_capacity: int = Field(
        default=1000,
        description="Max content keys held for fallback resolution (FIFO).",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, v: str | None) -> str | None:
        return v.rstrip("/") if v else None

    @field_validator(
        "indexer_timeout_seconds",
        "search_timeout_seconds",
        "provider_timeout_seconds",
        "probe_timeout_seconds",
        "resolve_attempt_timeout_seconds",
    )
    @classmethod
    def _validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("max_probe_candidates", "max_results", "stream_cache_capacity")
    @classmethod
    def _validate_caps(cls, v: int) -> int:
        if v < 1:
            raise ValueError("caps must be >= 1")
        return v


class DebridConfig(BaseModel):
    """Debrid provider credentials and protocol tuning.

    A provider is active only when its API key is set. Resolution tries
    active providers in ``order``.
    """

    order: list[DebridServiceName] = Field(
        default=["premiumize", "realdebrid"],
        description="Provider resolution order.",
    )

    premiumize_api_key: str | None = Field(default=None)
    premiumize_base_url: str = Field(default="https://www.premiumize.me/api")
    premiumize_batch_size: int = Field(
        default=99,
        description="Max hashes per /cache/check call.",
    )
    premiumize_batch_delay_seconds: float = Field(
        default=0.5,
        description="Pause between consecutive cache check batches.",
    )
    premiumize_max_attempts: int = Field(
        default=3,
        description="Attempts per API call on transport failure.",
    )
    premiumize_retry_delay_seconds: float = Field(default=2.0)

    realdebrid_api_key: str | None = Field(default=None)
    realdebrid_base_url: str = Field(
        default="https://api.real-debrid.com/rest/1.0",
    )
    realdebrid_assume_cached: bool = Field(
        default=True,
        description="Report every hash as cached (no availability endpoint).",
    )
    realdebrid_torrent_lookup_limit: int = Field(
        default=50,
        description="Recent torrents scanned before adding a magnet.",
    )
    realdebrid_selection_wait_seconds: float = Field(
        default=3.0,
        description="Wait after file selection before re-checking status.",
    )

    file_list_ttl_seconds: int = Field(
        default=1800,
        description="Memoization TTL for provider file lists (seconds).",
    )
    file_list_cache_size: int = Field(
        default=500,
        description="Max memoized file lists (FIFO eviction).",
    )

    @field_validator("premiumize_batch_size")
    @classmethod
    def _validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("premiumize_batch_size must be >= 1")
        return v

    @field_validator("premiumize_base_url", "realdebrid_base_url")
    @classmethod
    def _strip_urls(cls, v: str) -> str:
        return v.rstrip("/")


class AppConfig(BaseModel):
    """Validated configuration for one magnetarr process.

    Top-level HTTP and logging fields also accept the sectioned YAML
    spelling (``http.timeout_seconds``, ``logging.level``) through
    validation aliases. Layering happens in load.py.
    """

    # General
    app_name: str = Field(default="magnetarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Default timeout for outgoing HTTP requests.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
    )
    http_user_agent: str = Field(
        default="Magnetarr/0.1.0",
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )
    rate_limit_requests_per_second: float = Field(
        default=5.0,
        validation_alias=AliasChoices(
            "rate_limit_requests_per_second",
            AliasPath("http", "rate_limit_rps"),
        ),
        description="Per-host request rate (0 = unlimited).",
    )
    rate_limit_burst: int = Field(
        default=10,
        validation_alias=AliasChoices(
            "rate_limit_burst",
            AliasPath("http", "rate_limit_burst"),
        ),
    )
    host_rate_limits: dict[str, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices(
            "host_rate_limits",
            AliasPath("http", "host_rate_limits"),
        ),
        description="Per-host rps overrides, e.g. {'api.real-debrid.com': 4}.",
    )
    http_retry_max_attempts: int = Field(
        default=2,
        validation_alias=AliasChoices(
            "http_retry_max_attempts",
            AliasPath("http", "retry_max_attempts"),
        ),
        description="Retries on 429/503 responses.",
    )
    http_retry_backoff_base: float = Field(
        default=0.5,
        validation_alias=AliasChoices(
            "http_retry_backoff_base",
            AliasPath("http", "retry_backoff_base"),
        ),
    )
    http_retry_max_backoff: float = Field(
        default=5.0,
        validation_alias=AliasChoices(
            "http_retry_max_backoff",
            AliasPath("http", "retry_max_backoff"),
        ),
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    stremio: StremioConfig = Field(default_factory=StremioConfig)
    debrid: DebridConfig = Field(default_factory=DebridConfig)
    indexers: list[IndexerConfig] = Field(default_factory=list)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """JSON-safe dump in the YAML file layout, API keys left out."""
        secrets = {"premiumize_api_key", "realdebrid_api_key"}
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
                "rate_limit_rps": self.rate_limit_requests_per_second,
                "rate_limit_burst": self.rate_limit_burst,
                "host_rate_limits": dict(self.host_rate_limits),
                "retry_max_attempts": self.http_retry_max_attempts,
                "retry_backoff_base": self.http_retry_backoff_base,
                "retry_max_backoff": self.http_retry_max_backoff,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "stremio": self.stremio.model_dump(mode="json"),
            "debrid": self.debrid.model_dump(mode="json", exclude=secrets),
            "indexers": [i.model_dump(mode="json") for i in self.indexers],
        }


class EnvOverrides(BaseSettings):
    """``MAGNETARR_*`` environment variables, all optional.

    Names are the flat keys load.py maps into sections, e.g.
    ``MAGNETARR_BASE_URL``, ``MAGNETARR_PREMIUMIZE_API_KEY``,
    ``MAGNETARR_DEBRID_ORDER=realdebrid,premiumize`` or
    ``MAGNETARR_INDEXERS=Name=https://indexer.example``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAGNETARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    rate_limit_requests_per_second: Optional[float] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    base_url: Optional[str] = None
    addon_name: Optional[str] = None

    debrid_order: Optional[str] = None
    premiumize_api_key: Optional[str] = None
    realdebrid_api_key: Optional[str] = None

    indexers: Optional[str] = None

    def to_update_dict(self) -> dict[str, Any]:
        """Only the variables that are actually set."""
        return self.model_dump(exclude_none=True)
