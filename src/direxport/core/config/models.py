"""
Pydantic configuration models for Directory Export.

These models provide type-safe configuration with validation for:
- Directory API access
- Delivery endpoint and batching limits
- Token acquisition
- Per-call-site retry policies
- Logging
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from direxport.core.fetch.retries import RetryPolicy
from direxport.core.publish.batcher import DEFAULT_MAX_BATCH_BYTES, OversizePolicy


# =============================================================================
# Directory Configuration
# =============================================================================


class DirectoryConfig(BaseModel):
    """Remote directory API settings."""

    base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Directory API base URL",
    )
    resource: str = Field(
        default="https://graph.microsoft.com",
        description="Token audience for directory calls",
    )
    page_size: int = Field(
        default=999,
        ge=1,
        le=999,
        description="Records requested per page",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Per-request timeout in seconds",
    )
    records_key: str = Field(
        default="value",
        description="Response key holding the page records",
    )
    next_link_key: str = Field(
        default="@odata.nextLink",
        description="Response key holding the continuation URL",
    )


# =============================================================================
# Delivery Configuration
# =============================================================================


class DeliveryConfig(BaseModel):
    """Ingestion endpoint and batching settings."""

    namespace: str = Field(
        default="",
        description="Ingestion namespace (host prefix or full host name)",
    )
    channel_name: str = Field(
        default="",
        description="Channel (event hub) name within the namespace",
    )
    resource: str = Field(
        default="https://eventhubs.azure.net",
        description="Token audience for delivery calls",
    )
    max_batch_bytes: int = Field(
        default=DEFAULT_MAX_BATCH_BYTES,
        gt=2,
        description="Serialized chunk size ceiling in bytes (exclusive)",
    )
    oversize_policy: OversizePolicy = Field(
        default=OversizePolicy.SEND,
        description="Send or reject records larger than the ceiling",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Per-request timeout in seconds",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.namespace and self.channel_name)


# =============================================================================
# Auth Configuration
# =============================================================================


class AuthConfig(BaseModel):
    """Token acquisition settings."""

    identity_ref: str | None = Field(
        default=None,
        description="Client id of a user-assigned managed identity",
    )
    managed_identity: bool = Field(
        default=True,
        description="Use the host managed identity when no static token is set",
    )
    static_token: str | None = Field(
        default=None,
        description="Fixed bearer token (development only)",
    )


# =============================================================================
# Retry Configuration
# =============================================================================


class RetryPolicyConfig(BaseModel):
    """One retry policy."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=30.0, ge=0.0)
    jitter: bool = Field(default=True)

    @field_validator("max_delay")
    @classmethod
    def max_delay_gte_base(cls, v: float, info) -> float:
        """Ensure max delay is at least the base delay."""
        base_delay = info.data.get("base_delay", 0.0)
        if v < base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return v

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )


class RetryConfig(BaseModel):
    """Retry policies per call site."""

    token: RetryPolicyConfig = Field(
        default_factory=lambda: RetryPolicyConfig(max_attempts=3, base_delay=0.5, max_delay=5.0),
    )
    fetch: RetryPolicyConfig = Field(
        default_factory=lambda: RetryPolicyConfig(max_attempts=5, base_delay=1.0, max_delay=60.0),
    )
    publish: RetryPolicyConfig = Field(
        default_factory=lambda: RetryPolicyConfig(max_attempts=3, base_delay=1.0, max_delay=30.0),
    )


# =============================================================================
# Memberships Configuration
# =============================================================================


class MembershipsConfig(BaseModel):
    """Memberships stage settings."""

    inter_call_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        le=60.0,
        description="Fixed pause between group membership calls",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return v.upper()


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    memberships: MembershipsConfig = Field(default_factory=MembershipsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
