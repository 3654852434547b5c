"""
Configuration module for mailtap.

This module provides:
- Strongly-typed option classes (ConnectionOptions, TargetOptions)
- Configuration file loading (JSON, YAML, TOML)
- Environment variable support
- Validation and type checking via Pydantic

Example usage:
    from mailtap.config import MailtapConfig, ConnectionOptions, load_config

    # Load from file with environment overrides
    config = load_config("mailtap.config.json")

    # Create programmatically
    config = MailtapConfig(
        connection=ConnectionOptions(port=9333, command_timeout=30.0),
    )

Environment variables:
    MAILTAP_CONNECTION_HOST=localhost
    MAILTAP_CONNECTION_PORT=9333
    MAILTAP_CONNECTION_COMMAND_TIMEOUT=none
    MAILTAP_TARGET_URL_CONTAINS=mail.example.com
"""

from .defaults import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    ENV_PREFIX,
)
from .env import get_env, get_env_key, load_env_config
from .loader import (
    ConfigurationError,
    find_config_file,
    load_config,
    load_file,
    merge_configs,
)
from .options import ConnectionOptions, MailtapConfig, TargetOptions

__all__ = [
    # Defaults
    "DEFAULT_COMMAND_TIMEOUT",
    "DEFAULT_HANDSHAKE_TIMEOUT",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "ENV_PREFIX",
    # Options
    "ConnectionOptions",
    "MailtapConfig",
    "TargetOptions",
    # Loading
    "ConfigurationError",
    "find_config_file",
    "get_env",
    "get_env_key",
    "load_config",
    "load_env_config",
    "load_file",
    "merge_configs",
]
