"""
Configuration file loader for mailtap.

This module provides functions to load configuration from JSON, YAML and
TOML files, merged with environment variables and programmatic overrides.
"""

import json
import tomllib
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from .defaults import (
    DEFAULT_CONFIG_EXTENSIONS,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_CONFIG_SEARCH_PATHS,
)
from .env import load_env_config
from .options import MailtapConfig


class ConfigurationError(Exception):
    """Configuration loading or parsing error."""

    pass


def _load_json(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary
    """
    try:
        import yaml
    except ImportError:
        raise ConfigurationError(
            "PyYAML is required to load YAML config files. "
            "Install with: pip install pyyaml"
        )

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_file(path: Union[str, Path]) -> dict[str, Any]:
    """Load configuration from file based on extension.

    Args:
        path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If file format is not supported, the file is
            missing, or it cannot be parsed
    """
    path = Path(path)

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()

    try:
        if suffix == ".json":
            data = _load_json(path)
        elif suffix in (".yaml", ".yml"):
            data = _load_yaml(path)
        elif suffix == ".toml":
            data = _load_toml(path)
        else:
            raise ConfigurationError(f"Unsupported configuration format: {suffix}")
    except (ValueError, OSError) as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")

    return data


def find_config_file(
    filename: str = DEFAULT_CONFIG_FILENAME,
    search_paths: Optional[list[str]] = None,
    extensions: Optional[list[str]] = None,
) -> Optional[Path]:
    """Find configuration file in search paths.

    Args:
        filename: Base filename without extension
        search_paths: Directories to search
        extensions: File extensions to try

    Returns:
        Path to config file or None if not found
    """
    if search_paths is None:
        search_paths = DEFAULT_CONFIG_SEARCH_PATHS

    if extensions is None:
        extensions = DEFAULT_CONFIG_EXTENSIONS

    for search_path in search_paths:
        search_dir = Path(search_path).expanduser()

        for ext in extensions:
            config_path = search_dir / f"{filename}{ext}"
            if config_path.exists():
                return config_path

    return None


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Later configs take precedence over earlier ones.
    """
    result: dict[str, Any] = {}

    for config in configs:
        _deep_merge(result, config)

    return result


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[dict[str, Any]] = None,
    *,
    use_env: bool = True,
    auto_find: bool = True,
) -> MailtapConfig:
    """Load configuration from file, environment and overrides.

    Precedence, lowest first: config file, ``MAILTAP_*`` environment
    variables, ``overrides``.

    Args:
        path: Explicit config file. If omitted and ``auto_find`` is set,
            the default search paths are scanned.
        overrides: Programmatic values applied last
        use_env: Whether to read environment variables
        auto_find: Whether to search for a config file when no path is given

    Returns:
        Validated MailtapConfig

    Raises:
        ConfigurationError: If a file cannot be loaded or the merged values
            fail validation
    """
    layers: list[dict[str, Any]] = []

    config_path = Path(path) if path is not None else None
    if config_path is None and auto_find:
        config_path = find_config_file()
    if config_path is not None:
        layers.append(load_file(config_path))

    if use_env:
        try:
            layers.append(load_env_config())
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    if overrides:
        layers.append(overrides)

    try:
        return MailtapConfig.from_dict(merge_configs(*layers))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


__all__ = [
    "ConfigurationError",
    "find_config_file",
    "load_config",
    "load_file",
    "merge_configs",
]
