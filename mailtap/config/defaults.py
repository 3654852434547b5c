"""
Default configuration values for mailtap.

This module contains all default values used throughout the configuration system.
"""

# Connection defaults
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 9222
DEFAULT_DISCOVERY_TIMEOUT = 5.0
DEFAULT_HANDSHAKE_TIMEOUT = 10.0
DEFAULT_COMMAND_TIMEOUT = 10.0
DEFAULT_MAX_MESSAGE_SIZE = 100 * 1024 * 1024  # 100MB, large Runtime.evaluate payloads
DEFAULT_PING_INTERVAL = 30.0
DEFAULT_PING_TIMEOUT = 10.0

# Target selection defaults
DEFAULT_TARGET_TYPE = None
DEFAULT_EXCLUDE_URL_CONTAINS = ["background"]

# Environment variable prefix
ENV_PREFIX = "MAILTAP_"

# Configuration file settings
DEFAULT_CONFIG_FILENAME = "mailtap.config"
DEFAULT_CONFIG_EXTENSIONS = [".json", ".yaml", ".yml", ".toml"]
DEFAULT_CONFIG_SEARCH_PATHS = [
    ".",
    "~/.config/mailtap",
    "~",
]
