"""TOML configuration loader with deep merge support.

Parley reads at most two files from the config directory: default.toml and
the file named after the active environment. Either may be missing, in
which case the pydantic model defaults apply.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "PARLEY_CONFIG_DIR"
ENVIRONMENT_ENV = "PARLEY_ENV"
DEFAULT_ENVIRONMENT = "development"

# How many parent directories are searched for config/
_SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Get the configuration directory path.

    PARLEY_CONFIG_DIR wins when set. Otherwise the nearest config/ directory
    in the working directory or one of its parents is used.

    Returns:
        Path to the configuration directory (may not exist)

    Raises:
        FileNotFoundError: If PARLEY_CONFIG_DIR names a missing directory
    """
    config_dir_env = os.environ.get(CONFIG_DIR_ENV)
    if config_dir_env:
        path = Path(config_dir_env)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {config_dir_env}")
        return path

    current = Path.cwd()
    for _ in range(_SEARCH_DEPTH):
        config_path = current / "config"
        if config_path.is_dir():
            return config_path
        if current.parent == current:
            break
        current = current.parent

    return Path("config")


def get_environment() -> str:
    """Get the active environment name from PARLEY_ENV.

    Returns:
        The environment name, 'development' when unset or blank
    """
    return os.environ.get(ENVIRONMENT_ENV, "").strip() or DEFAULT_ENVIRONMENT


def load_toml(file_path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary.

    Args:
        file_path: Path to the TOML file

    Returns:
        Dictionary containing the TOML data

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Tables such as [queue] or [observability.logging] are merged key by key,
    so an environment file only has to name the values it changes.

    Args:
        base: Base dictionary
        override: Override dictionary (takes precedence)

    Returns:
        Merged dictionary; neither input is modified
    """
    result = base.copy()

    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(config_dir: Path | None = None, env: str | None = None) -> dict[str, Any]:
    """Load configuration from TOML files.

    Loading order:
    1. default.toml (optional)
    2. {env}.toml (optional)

    Args:
        config_dir: Directory to read; defaults to get_config_dir()
        env: Environment name; defaults to get_environment()

    Returns:
        Merged configuration dictionary, empty when neither file exists
    """
    config_dir = config_dir or get_config_dir()
    env = env or get_environment()

    config: dict[str, Any] = {}
    for path in (config_dir / "default.toml", config_dir / f"{env}.toml"):
        if path.exists():
            config = deep_merge(config, load_toml(path))

    return config
