"""
Environment variable support for mailtap configuration.

This module provides functions to load configuration values from environment
variables with support for type conversion and nested keys.
"""

import os
from typing import Any, Optional, TypeVar, Union, get_args, get_origin

from .defaults import ENV_PREFIX

T = TypeVar("T")

_NONE_VALUES = ("", "none", "null")


def get_env_key(key: str, prefix: str = ENV_PREFIX) -> str:
    """Convert a configuration key to environment variable name.

    Args:
        key: Configuration key (e.g., "connection.port")
        prefix: Environment variable prefix

    Returns:
        Environment variable name (e.g., "MAILTAP_CONNECTION_PORT")
    """
    return f"{prefix}{key.upper().replace('.', '_').replace('-', '_')}"


def parse_bool(value: str) -> bool:
    """Parse string to boolean."""
    return value.lower() in ("true", "1", "yes", "on", "enabled")


def parse_list(value: str, item_type: type = str) -> list[Any]:
    """Parse a comma-separated string to a list.

    Args:
        value: Comma-separated string value
        item_type: Type of list items

    Returns:
        List of parsed values
    """
    if not value:
        return []

    items = [item.strip() for item in value.split(",") if item.strip()]

    if item_type == int:
        return [int(item) for item in items]
    elif item_type == float:
        return [float(item) for item in items]
    elif item_type == bool:
        return [parse_bool(item) for item in items]

    return items


def parse_value(value: str, target_type: Any) -> Any:
    """Parse string value to target type.

    ``Optional[X]`` accepts "none", "null" or an empty string as None.

    Args:
        value: String value
        target_type: Target type

    Returns:
        Parsed value
    """
    origin = get_origin(target_type)

    if origin is Union:
        args = get_args(target_type)
        if type(None) in args and value.strip().lower() in _NONE_VALUES:
            return None
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            return parse_value(value, non_none_types[0])
        return value

    if origin is list:
        item_type = get_args(target_type)[0] if get_args(target_type) else str
        return parse_list(value, item_type)

    if target_type == bool:
        return parse_bool(value)

    if target_type == int:
        return int(value)

    if target_type == float:
        return float(value)

    return value


def get_env(
    key: str,
    default: Optional[T] = None,
    target_type: Optional[Any] = None,
    prefix: str = ENV_PREFIX,
) -> Optional[Union[T, str]]:
    """Get configuration value from environment variable.

    Args:
        key: Configuration key (e.g., "connection.port")
        default: Default value if not set
        target_type: Target type for parsing
        prefix: Environment variable prefix

    Returns:
        Parsed value or default
    """
    value = os.environ.get(get_env_key(key, prefix))

    if value is None:
        return default

    if target_type is not None:
        return parse_value(value, target_type)

    if default is not None:
        return parse_value(value, type(default))

    return value


# Predefined environment variable mappings
ENV_MAPPINGS: dict[str, Any] = {
    "connection.host": str,
    "connection.port": int,
    "connection.discovery_timeout": float,
    "connection.handshake_timeout": float,
    "connection.command_timeout": Optional[float],
    "connection.max_message_size": int,
    "connection.ping_interval": Optional[float],
    "connection.ping_timeout": Optional[float],
    "target.url_contains": Optional[str],
    "target.exclude_url_contains": list[str],
    "target.target_type": Optional[str],
}


def load_env_config(prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Load configuration from predefined environment variables.

    Only variables that are set appear in the result, so the returned
    dictionary can be merged over file configuration.

    Returns:
        Nested dictionary of configuration values
    """
    result: dict[str, Any] = {}

    for key, target_type in ENV_MAPPINGS.items():
        value = os.environ.get(get_env_key(key, prefix))
        if value is not None:
            section, option = key.split(".", 1)
            result.setdefault(section, {})[option] = parse_value(value, target_type)

    return result


__all__ = [
    "ENV_MAPPINGS",
    "get_env",
    "get_env_key",
    "load_env_config",
    "parse_bool",
    "parse_list",
    "parse_value",
]
