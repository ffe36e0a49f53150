"""Provides functions for loading and resolving client configuration.

Supports loading from .env files, environment variables, and a YAML file
(~/.pincho/config.yaml). The client only needs four resolved values: token,
API URL, timeout and max retries.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".pincho"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_API_URL = "https://api.pincho.app/send"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3

ENV_TOKEN = "PINCHO_TOKEN"
ENV_API_URL = "PINCHO_API_URL"
ENV_TIMEOUT = "PINCHO_TIMEOUT"
ENV_MAX_RETRIES = "PINCHO_MAX_RETRIES"

_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


@dataclass(frozen=True)
class ClientSettings:
    """Resolved values the client needs before any call begins."""
    token: Optional[str]
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from a YAML file and a .env file.

    Priority order (highest to lowest) once loaded:
    1. Environment variables (a .env file never overrides them)
    2. .env file
    3. YAML configuration file
    4. Defaults

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above current directory.")

    _loaded = True


def get_config(key: str, default: Any = None) -> Any:
    """Gets a raw configuration value by YAML key.

    Test overrides win over the YAML file. Environment variables are read
    separately by resolve_settings since their names differ from the keys.
    """
    if key in _test_config:
        return _test_config[key]
    if key in _config:
        return _config[key]
    return default


def _parse_timeout(value: Any, source: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric timeout from {source}: {value!r}")
        return None
    if seconds <= 0:
        logger.warning(f"Ignoring non-positive timeout from {source}: {value!r}")
        return None
    return seconds


def _parse_max_retries(value: Any, source: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        retries = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer max retries from {source}: {value!r}")
        return None
    if retries < 0:
        logger.warning(f"Ignoring negative max retries from {source}: {value!r}")
        return None
    return retries


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_settings(
    token: Optional[str] = None,
    api_url: Optional[str] = None,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
) -> ClientSettings:
    """Resolves client settings from arguments, environment, YAML and defaults.

    Explicit arguments are returned as given so the client constructor can
    reject invalid ones. Invalid environment or YAML values are skipped.
    """
    load_configuration()

    resolved_token = _first(
        token or None,
        os.environ.get(ENV_TOKEN) or None,
        get_config("token") or None,
    )
    resolved_url = _first(
        api_url,
        os.environ.get(ENV_API_URL) or None,
        get_config("api_url") or None,
        DEFAULT_API_URL,
    )
    resolved_timeout = _first(
        timeout,
        _parse_timeout(os.environ.get(ENV_TIMEOUT), ENV_TIMEOUT),
        _parse_timeout(get_config("timeout"), "config file"),
        DEFAULT_TIMEOUT_SECONDS,
    )
    resolved_retries = _first(
        max_retries,
        _parse_max_retries(os.environ.get(ENV_MAX_RETRIES), ENV_MAX_RETRIES),
        _parse_max_retries(get_config("max_retries"), "config file"),
        DEFAULT_MAX_RETRIES,
    )

    return ClientSettings(
        token=str(resolved_token) if resolved_token is not None else None,
        api_url=str(resolved_url),
        timeout=resolved_timeout,
        max_retries=resolved_retries,
    )


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Overrides YAML configuration values for tests."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clears all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
