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

from streamgate.infrastructure.fetching.page_fetcher import DEFAULT_USER_AGENT

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


class ResolverConfig(BaseModel):
    """Embed page resolution (YAML section: resolver.*)."""

    page_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for fetching the page being resolved.",
    )
    aux_timeout_seconds: float = Field(
        default=8.0,
        ge=3.0,
        le=8.0,
        description="Timeout for iframe, script and API probe fetches.",
    )
    max_iframes: int = Field(
        default=3,
        ge=0,
        description="Max <iframe> targets followed when the page has no media.",
    )
    max_scripts: int = Field(
        default=5,
        ge=0,
        description="Max external <script> targets followed.",
    )
    exhaustive: bool = Field(
        default=False,
        description="Run every stage and merge results instead of stopping early.",
    )
    api_probes_enabled: bool = Field(
        default=True,
        description="Probe provider-shaped API endpoints as the last stage.",
    )
    api_probe_concurrency: int = Field(
        default=3,
        ge=1,
        le=5,
        description="Max parallel API probe requests.",
    )


class ProxyConfig(BaseModel):
    """Streaming proxy (YAML section: proxy.*)."""

    path: str = Field(
        default="/proxy",
        description="Route under which the proxy is mounted; used in rewritten URLs.",
    )
    default_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent sent upstream when neither ua= nor the client sets one.",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upstream connect timeout. Reads are unbounded.",
    )
    max_buffered_bytes: int = Field(
        default=50 * 1024 * 1024,
        ge=0,
        description="Bodies up to this size are read whole so they can be cached.",
    )

    @field_validator("path")
    @classmethod
    def _validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("proxy.path must start with '/'")
        return v.rstrip("/") or "/"


class CacheConfig(BaseModel):
    """In-process media cache (YAML section: cache.*)."""

    max_size_bytes: int = Field(
        default=1024 * 1024 * 1024,
        gt=0,
        description="Total byte budget of the cache.",
    )
    max_object_bytes: int = Field(
        default=50 * 1024 * 1024,
        gt=0,
        description="Largest progressive file admitted to the cache.",
    )
    hls_ttl_seconds: float = Field(
        default=300,
        gt=0,
        description="Base TTL for HLS playlists.",
    )
    binary_ttl_seconds: float = Field(
        default=3600,
        gt=0,
        description="Base TTL for mp4/webm files.",
    )
    min_ttl_seconds: float = Field(
        default=60,
        ge=0,
        description="Floor applied after reliability and expiry adjustments.",
    )
    sweep_interval_seconds: float = Field(
        default=600,
        gt=0,
        description="Interval of the background purge of expired entries.",
    )


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/resolver/proxy/cache/logging/api).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="streamgate", description="Application name.")
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
        description="Default timeout of the shared HTTP client.",
    )
    http_follow_redirects: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "http_follow_redirects",
            AliasPath("http", "follow_redirects"),
        ),
        description="Whether the HTTP client follows redirects.",
    )
    http_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for page fetches when the caller sends none.",
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

    # API (YAML section: api.*)
    api_rate_limit_rpm: int = Field(
        default=0,
        validation_alias=AliasChoices(
            "api_rate_limit_rpm",
            AliasPath("api", "rate_limit_rpm"),
        ),
        description="Requests per minute per client IP. 0 = unlimited.",
    )

    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @field_validator("api_rate_limit_rpm")
    @classmethod
    def _validate_rate_limit(cls, v: int) -> int:
        if v < 0:
            raise ValueError("api_rate_limit_rpm must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "follow_redirects": self.http_follow_redirects,
                "user_agent": self.http_user_agent,
            },
            "resolver": self.resolver.model_dump(),
            "proxy": self.proxy.model_dump(),
            "cache": self.cache.model_dump(),
            "logging": {"level": self.log_level, "format": self.log_format},
            "api": {"rate_limit_rpm": self.api_rate_limit_rpm},
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read STREAMGATE_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - STREAMGATE_HTTP_TIMEOUT_SECONDS
    - STREAMGATE_RESOLVER_EXHAUSTIVE
    - STREAMGATE_PROXY_PATH
    - STREAMGATE_CACHE_MAX_SIZE_BYTES
    - STREAMGATE_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAMGATE_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_follow_redirects: Optional[bool] = None
    http_user_agent: Optional[str] = None

    resolver_page_timeout_seconds: Optional[float] = None
    resolver_aux_timeout_seconds: Optional[float] = None
    resolver_max_iframes: Optional[int] = None
    resolver_max_scripts: Optional[int] = None
    resolver_exhaustive: Optional[bool] = None
    resolver_api_probes_enabled: Optional[bool] = None
    resolver_api_probe_concurrency: Optional[int] = None

    proxy_path: Optional[str] = None
    proxy_default_user_agent: Optional[str] = None
    proxy_connect_timeout_seconds: Optional[float] = None
    proxy_max_buffered_bytes: Optional[int] = None

    cache_max_size_bytes: Optional[int] = None
    cache_max_object_bytes: Optional[int] = None
    cache_hls_ttl_seconds: Optional[float] = None
    cache_binary_ttl_seconds: Optional[float] = None
    cache_min_ttl_seconds: Optional[float] = None
    cache_sweep_interval_seconds: Optional[float] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    api_rate_limit_rpm: Optional[int] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
