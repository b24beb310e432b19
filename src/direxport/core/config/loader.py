"""
Configuration loader for YAML files.

Loads and validates configuration from YAML files into Pydantic models.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig

DEFAULT_CONFIG_PATH = Path("configs/app.yaml")

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """Configuration loading or validation error."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.details:
            return f"{message}\n{self.details}"
        return message


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dictionary.

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}",
            path=path,
            details=str(e),
        ) from e
    except OSError as e:
        raise ConfigError(
            f"Cannot read {path}",
            path=path,
            details=str(e),
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=path)
    return data


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in string values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    if isinstance(data, str):
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2) or ""
            return os.environ.get(var_name, default)

        return ENV_VAR_PATTERN.sub(replacer, data)
    elif isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


def parse_app_config(data: dict[str, Any], path: Path | None = None) -> AppConfig:
    """Validate a raw configuration mapping.

    Raises:
        ConfigError: If configuration is invalid
    """
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        where = f" in {path}" if path else ""
        raise ConfigError(
            f"Invalid configuration{where}",
            path=path,
            details=str(e),
        ) from e


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load application configuration from YAML file.

    Args:
        path: Path to app.yaml (default: configs/app.yaml; defaults are
              used when that file is absent)
        expand_env: Whether to expand environment variables

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return parse_app_config({})
        path = DEFAULT_CONFIG_PATH
    else:
        path = Path(path)

    data = _load_yaml_file(path)

    if expand_env:
        data = _expand_env_vars(data)

    return parse_app_config(data, path)


def validate_config_file(path: Path | str) -> list[str]:
    """Validate a configuration file without building the pipeline.

    Returns:
        List of validation error messages (empty if valid)
    """
    path = Path(path)
    errors: list[str] = []

    try:
        data = _expand_env_vars(_load_yaml_file(path))
    except ConfigError as e:
        errors.append(str(e))
        return errors

    try:
        AppConfig.model_validate(data)
    except ValidationError as e:
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"{loc}: {msg}" if loc else msg)

    return errors
