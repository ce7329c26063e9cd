"""Runtime configuration for the Elasticsearch persistence layer.

Values are read from environment variables prefixed with ``ELASTIC_`` (or a
``.env`` file). Nested models use ``__`` as delimiter, e.g.
``ELASTIC_READER__INDEX=logs-*`` or ``ELASTIC_BACKOFF__FLOOR_MS=1000``.
"""

import logging
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReaderConfig(BaseModel):
    """Query-building and search-result options for readers."""

    index: str | None = Field(
        default=None, description="Index name or pattern queried by readers"
    )
    date_field_name: str = Field(
        default="date", description="Document field used for date range slicing"
    )
    query: str | None = Field(
        default=None, description="Lucene query string appended to every slice"
    )
    fields: list[str] | None = Field(
        default=None, description="Restrict returned _source to these fields"
    )
    full_response: bool = Field(
        default=False,
        description="Return raw search responses instead of extracted _source documents",
    )


class BackoffConfig(BaseModel):
    """Jittered backoff window used when the cluster pushes back.

    The window starts at ``[floor_ms, ceiling_ms)`` and widens after every
    retry until both bounds reach their caps.
    """

    floor_ms: int = Field(default=5000, ge=0, description="Initial lower bound")
    ceiling_ms: int = Field(default=10000, ge=1, description="Initial upper bound")
    floor_step_ms: int = Field(default=5000, ge=0, description="Floor increment per retry")
    ceiling_step_ms: int = Field(
        default=10000, ge=0, description="Ceiling increment per retry"
    )
    floor_cap_ms: int = Field(default=30000, ge=0, description="Maximum floor")
    ceiling_cap_ms: int = Field(default=60000, ge=1, description="Maximum ceiling")

    @model_validator(mode="after")
    def validate_window(self) -> "BackoffConfig":
        """Ensure the window can never invert while widening."""
        if self.floor_ms >= self.ceiling_ms:
            raise ValueError(
                f"floor_ms ({self.floor_ms}) must be lower than ceiling_ms ({self.ceiling_ms})"
            )
        if self.floor_cap_ms >= self.ceiling_cap_ms:
            raise ValueError(
                f"floor_cap_ms ({self.floor_cap_ms}) must be lower than "
                f"ceiling_cap_ms ({self.ceiling_cap_ms})"
            )
        if self.floor_step_ms > self.ceiling_step_ms:
            raise ValueError(
                f"floor_step_ms ({self.floor_step_ms}) must not exceed "
                f"ceiling_step_ms ({self.ceiling_step_ms})"
            )
        return self


class ElasticSettings(BaseSettings):
    """Elasticsearch persistence settings with validation and type safety."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ELASTIC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # CONNECTION
    # ============================================================================

    hosts: list[str] = Field(
        default=["http://localhost:9200"], description="Elasticsearch node URLs"
    )
    api_key: str | None = Field(default=None, description="API key for authentication")
    request_timeout: int = Field(
        default=30, ge=1, le=300, description="Per-request timeout in seconds"
    )

    # ============================================================================
    # READER / RETRY BEHAVIOUR
    # ============================================================================

    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)

    bulk_warning_interval_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Minimum interval between 'queues overloaded' warnings, process-wide",
    )
    default_max_result_window: int = Field(
        default=10000,
        ge=1,
        description="Window size assumed when an index does not set max_result_window",
    )
    minimum_cluster_version: str = Field(
        default="2.1.0",
        description="Clusters at or above this version get their index settings verified",
    )

    # ============================================================================
    # LOGGING
    # ============================================================================

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("minimum_cluster_version")
    @classmethod
    def validate_minimum_cluster_version(cls, v: str) -> str:
        """Validate dotted numeric version."""
        if not all(part.isdigit() for part in v.split(".")):
            raise ValueError(f"Invalid version '{v}', expected dotted numbers")
        return v


def configure_logging(settings: ElasticSettings) -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level), format=settings.log_format
    )


@lru_cache
def get_settings() -> ElasticSettings:
    """Get cached settings instance."""
    return ElasticSettings()
