"""Configuration loading and validation."""

from .models import (
    AppConfig,
    AuthConfig,
    DeliveryConfig,
    DirectoryConfig,
    LoggingConfig,
    MembershipsConfig,
    RetryConfig,
    RetryPolicyConfig,
)
from .loader import ConfigError, load_app_config, parse_app_config, validate_config_file

__all__ = [
    # Config models
    "AppConfig",
    "AuthConfig",
    "DeliveryConfig",
    "DirectoryConfig",
    "LoggingConfig",
    "MembershipsConfig",
    "RetryConfig",
    "RetryPolicyConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "parse_app_config",
    "validate_config_file",
]
