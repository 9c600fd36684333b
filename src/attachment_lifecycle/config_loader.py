"""Configuration loading with clear priority hierarchy.

Configuration is loaded in the following priority order (lowest to highest):
1. Pydantic model defaults (defined in config_models.py)
2. defaults.yaml file
3. config.yaml file
4. Environment variables (a .env file is loaded first if present)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from .config_models import AppConfig
from .config_sources import deep_merge_dicts, load_yaml_file

logger = logging.getLogger(__name__)

DEFAULT_DEFAULTS_FILE = "defaults.yaml"
DEFAULT_CONFIG_FILE = "config.yaml"


@dataclass
class EnvVarMapping:
    """Defines how an environment variable maps to a config path.

    Attributes:
        env_var: Environment variable name
        config_path: Dot-separated path in config dict (e.g., "avatar_storage.storage_path")
        value_type: Type to convert the value to (str, int, bool, list)
        list_separator: Separator for list values (default ",")
    """

    env_var: str
    config_path: str
    value_type: type = str
    list_separator: str = ","


ENV_VAR_MAPPINGS: list[EnvVarMapping] = [
    EnvVarMapping("DATABASE_URL", "database_url"),
    EnvVarMapping("AVATAR_STORAGE_PATH", "avatar_storage.storage_path"),
    EnvVarMapping("AVATAR_PUBLIC_URL_PREFIX", "avatar_storage.public_url_prefix"),
    EnvVarMapping("AVATAR_NAME_PREFIX", "avatar_storage.name_prefix"),
    EnvVarMapping("AVATAR_MAX_FILE_SIZE", "upload_policy.max_file_size", int),
    EnvVarMapping("AVATAR_ALLOWED_FORMATS", "upload_policy.allowed_formats", list),
    EnvVarMapping("LOG_LEVEL", "logging.level"),
]


def set_nested_value(
    data: dict[str, Any],
    path: str,
    value: Any,  # noqa: ANN401
) -> None:
    """Set a value at a nested path in a dictionary, creating parents as needed."""
    keys = path.split(".")
    current = data
    for key in keys[:-1]:
        if key not in current:
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def parse_env_value(
    value: str,
    value_type: type,
    list_separator: str = ",",
) -> Any:  # noqa: ANN401
    """Parse an environment variable value to the specified type.

    Raises:
        ValueError: If the value cannot be converted to the target type
    """
    if value_type is int:
        return int(value)

    if value_type is bool:
        return value.lower() in {"true", "1", "yes"}

    if value_type is list:
        return [item.strip() for item in value.split(list_separator) if item.strip()]

    return value


def apply_env_var_overrides(
    config_data: dict[str, Any],
    mappings: list[EnvVarMapping] | None = None,
) -> None:
    """Apply environment variable overrides to configuration.

    Args:
        config_data: The configuration dictionary to modify in place
        mappings: List of env var mappings to apply (defaults to ENV_VAR_MAPPINGS)
    """
    if mappings is None:
        mappings = ENV_VAR_MAPPINGS

    for mapping in mappings:
        env_value = os.getenv(mapping.env_var)
        if env_value is None:
            continue
        try:
            parsed_value = parse_env_value(
                env_value, mapping.value_type, mapping.list_separator
            )
        except ValueError as e:
            logger.error(
                f"Invalid value for {mapping.env_var}: {e}. Using previous value."
            )
            continue
        set_nested_value(config_data, mapping.config_path, parsed_value)
        logger.debug(f"Applied env var {mapping.env_var} to {mapping.config_path}")


def load_config(
    defaults_file_path: str = DEFAULT_DEFAULTS_FILE,
    config_file_path: str = DEFAULT_CONFIG_FILE,
    load_dotenv_file: bool = True,
) -> AppConfig:
    """Load configuration with clear priority hierarchy.

    Args:
        defaults_file_path: Path to the defaults YAML file
        config_file_path: Path to the operator config YAML file (optional)
        load_dotenv_file: Whether to load .env file (default True)

    Returns:
        A validated AppConfig model containing all configuration

    Raises:
        ValidationError: If configuration contains invalid keys or values
    """
    config_data = AppConfig().model_dump()
    for yaml_path in (defaults_file_path, config_file_path):
        if os.path.exists(yaml_path):
            config_data = deep_merge_dicts(config_data, load_yaml_file(yaml_path))
            logger.info(f"Merged configuration from {yaml_path}")

    if load_dotenv_file:
        load_dotenv()

    apply_env_var_overrides(config_data)

    try:
        validated_config = AppConfig.model_validate(config_data)
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise

    logger.info(
        "Configuration loaded: database=%s, avatar storage=%s",
        _redact_url(validated_config.database_url),
        validated_config.avatar_storage.storage_path,
    )
    return validated_config


def _redact_url(database_url: str) -> str:
    """Hide the password part of a database URL for logging."""
    scheme, sep, rest = database_url.partition("://")
    if not sep or "@" not in rest:
        return database_url
    credentials, _, host = rest.rpartition("@")
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
