"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.econfetch/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from econfetch.domain.models.common import DEFAULT_TTL_SECONDS, RetryPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".econfetch"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_CACHE_DIR = DEFAULT_CONFIG_DIR / "cache"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "ECONFETCH_"
DEFAULT_RATE_LIMIT_TIMEOUT_SECONDS = 120.0

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

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

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):  # ENV VARS take precedence
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value


def _lookup(config: Dict[str, Any], key: str) -> Any:
    """Finds a dotted key, either literally or by walking nested mappings."""
    if key in config:
        return config[key]
    node: Any = config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(key)
        node = node[part]
    return node


def env_var_name(key: str) -> str:
    """'cache.default_ttl' -> 'ECONFETCH_CACHE_DEFAULT_TTL'."""
    return ENV_PREFIX + key.upper().replace('.', '_')


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (ECONFETCH_ prefixed, dots as underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'retry.max_attempts'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    try:
        return _lookup(_config, key)
    except KeyError:
        logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
        return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def get_fred_api_key() -> Optional[str]:
    """Convenience function to get the FRED API key."""
    # Checks plain FRED_API_KEY first, then ECONFETCH_FRED_API_KEY / yaml fred.api_key
    key = os.environ.get('FRED_API_KEY') or get_config('fred.api_key')
    return str(key) if key else None


def get_cache_dir() -> Path:
    return Path(get_config('cache.directory', DEFAULT_CACHE_DIR)).expanduser()


def get_default_ttl() -> int:
    return int(get_config('cache.default_ttl', DEFAULT_TTL_SECONDS))


def get_rate_limit_timeout() -> float:
    return float(get_config('rate_limit.timeout', DEFAULT_RATE_LIMIT_TIMEOUT_SECONDS))


TRUE_STRINGS = frozenset({'true', '1', 'yes', 'on'})
FALSE_STRINGS = frozenset({'false', '0', 'no', 'off', ''})


def get_serve_stale() -> bool:
    """
    Check whether a rate limit timeout may be answered with a stale cache entry.

    Returns:
        True only for an explicit true/1/yes/on value, False otherwise
    """
    flag = get_config('rate_limit.serve_stale', False)

    # Handle string values from YAML or env files
    if isinstance(flag, str):
        value = flag.strip().lower()
        if value in TRUE_STRINGS:
            return True
        if value not in FALSE_STRINGS:
            logger.warning(f"Unexpected value for rate_limit.serve_stale: '{flag}'. Defaulting to False.")
        return False

    if flag is None:
        return False

    if isinstance(flag, (bool, int)) and flag in (0, 1):
        return bool(flag)

    logger.warning(f"Unexpected value for rate_limit.serve_stale: {flag!r}. Defaulting to False.")
    return False


def get_retry_policy() -> RetryPolicy:
    """Builds the retry policy from 'retry.*' keys, falling back to RetryPolicy defaults."""
    defaults = RetryPolicy()
    return RetryPolicy(
        max_attempts=int(get_config('retry.max_attempts', defaults.max_attempts)),
        base_delay=float(get_config('retry.base_delay', defaults.base_delay)),
        max_delay=float(get_config('retry.max_delay', defaults.max_delay)),
        backoff_multiplier=float(get_config('retry.backoff_multiplier', defaults.backoff_multiplier)),
        jitter=float(get_config('retry.jitter', defaults.jitter)),
    )


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
