"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.aniq/config.yaml).
"""

import logging
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from aniq.infrastructure.api.anilist_client import (
    DEFAULT_API_URL,
    DEFAULT_REACHABILITY_URL,
    DEFAULT_TIMEOUT_SECONDS as DEFAULT_REQUEST_TIMEOUT_SECONDS,
)
from aniq.infrastructure.resilience.rate_governor import (
    DEFAULT_LOW_WATER_MARK,
    DEFAULT_MAX_PER_MINUTE,
    DEFAULT_REMAINING_HEADER_OFFSET,
    DEFAULT_RESET_BUFFER_SECONDS,
    DEFAULT_WINDOW_SECONDS,
)

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".aniq"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "ANIQ_"

DEFAULT_CACHE_DIR = DEFAULT_CONFIG_DIR / "cache"

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DIFFICULTY = "medium"
DEFAULT_START_YEAR = 2000

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def _flatten(tree: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('rate_limit.max_per_minute')."""
    flat: Dict[str, Any] = {}
    for key, value in tree.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (ANIQ_RATE_LIMIT_MAX_PER_MINUTE or RATE_LIMIT_MAX_PER_MINUTE)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, dotted for nested YAML values
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    for candidate in (ENV_PREFIX + env_key, env_key):
        if candidate in os.environ:
            return _coerce(os.environ[candidate])

    if key in _config:
        return _config[key]

    return default


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the rest of the process."""
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_api_url() -> str:
    return str(get_config('api.url', DEFAULT_API_URL))


def get_request_timeout() -> float:
    return float(get_config('api.timeout_seconds', DEFAULT_REQUEST_TIMEOUT_SECONDS))


def get_reachability_url() -> str:
    return str(get_config('api.reachability_url', DEFAULT_REACHABILITY_URL))


def get_cache_dir() -> Path:
    return Path(get_config('cache.dir', DEFAULT_CACHE_DIR)).expanduser()


def get_rate_limit_settings() -> Dict[str, Any]:
    """Budget constants for the rate governor."""
    return {
        'max_per_minute': int(get_config('rate_limit.max_per_minute', DEFAULT_MAX_PER_MINUTE)),
        'low_water_mark': int(get_config('rate_limit.low_water_mark', DEFAULT_LOW_WATER_MARK)),
        'window_seconds': int(get_config('rate_limit.window_seconds', DEFAULT_WINDOW_SECONDS)),
        'remaining_header_offset': int(get_config('rate_limit.remaining_header_offset', DEFAULT_REMAINING_HEADER_OFFSET)),
        'reset_buffer_seconds': float(get_config('rate_limit.reset_buffer_seconds', DEFAULT_RESET_BUFFER_SECONDS)),
    }


def get_max_attempts() -> int:
    return int(get_config('quiz.max_attempts', DEFAULT_MAX_ATTEMPTS))


def get_default_difficulty() -> str:
    return str(get_config('quiz.difficulty', DEFAULT_DIFFICULTY))


def get_default_year_range() -> Dict[str, int]:
    return {
        'start': int(get_config('quiz.start_year', DEFAULT_START_YEAR)),
        'end': int(get_config('quiz.end_year', date.today().year)),
    }


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
