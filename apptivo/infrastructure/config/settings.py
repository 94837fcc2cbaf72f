"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a YAML
configuration file (~/.apptivo/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from apptivo.domain.models.common import BackoffPolicy
from apptivo.domain.models.credentials import Credentials, SessionCredentials

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".apptivo"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "APPTIVO_"

DEFAULTS: Dict[str, Any] = {
    "api.base_url": "https://api2.apptivo.com",
    "api.sleep_seconds": 1.0,
    "api.retries": 1,
    "api.backoff_factor": 1.0,
    "api.timeout_seconds": 30.0,
    "logging.level": "INFO",
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys: {'api': {'retries': 2}} -> {'api.retries': 2}."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides (set_config_for_testing)
    2. Environment Variables
    3. .env file
    4. YAML configuration file
    5. DEFAULTS

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
                _config.update(_flatten(yaml_config))
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
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled by os.environ in get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")


def env_key_for(key: str) -> str:
    """'api.sleep_seconds' -> 'APPTIVO_API_SLEEP_SECONDS'; 'APPTIVO_API_KEY' is unchanged."""
    env_key = key.upper().replace('.', '_')
    if not env_key.startswith(ENV_PREFIX):
        env_key = ENV_PREFIX + env_key
    return env_key


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None, raw: bool = False) -> Any:
    """
    Get a configuration value by key.

    Args:
        key: The configuration key ('api.retries', 'APPTIVO_API_KEY' ...)
        default: Value returned when the key is set nowhere (DEFAULTS apply first)
        raw: Return environment values as strings, without number/bool coercion

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_key_for(key)
    if env_key in os.environ:
        value = os.environ[env_key]
        return value if raw else _coerce(value)

    if key in _config:
        return _config[key]

    if key in DEFAULTS:
        return DEFAULTS[key]

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


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the rest of the process."""
    logger.debug(f"Setting config: {key}")
    _config[key] = value


# --- Convenience Functions ---

def _secret(key: str) -> Optional[str]:
    value = get_config(key, raw=True)
    return str(value) if value not in (None, "") else None


def get_credentials() -> Optional[Credentials]:
    """Builds Credentials from APPTIVO_API_KEY / APPTIVO_ACCESS_KEY / APPTIVO_USER_EMAIL."""
    api_key = _secret('APPTIVO_API_KEY') or _secret('api.api_key')
    access_key = _secret('APPTIVO_ACCESS_KEY') or _secret('api.access_key')
    if not api_key or not access_key:
        return None
    user_email = _secret('APPTIVO_USER_EMAIL') or _secret('api.user_email')
    return Credentials(api_key=api_key, access_key=access_key, acting_user_email=user_email)


def get_session_credentials() -> Optional[SessionCredentials]:
    """Builds SessionCredentials when a session email and password are configured."""
    email = _secret('APPTIVO_SESSION_EMAIL') or _secret('session.email')
    password = _secret('APPTIVO_SESSION_PASSWORD') or _secret('session.password')
    if not email or not password:
        return None
    firm_id = _secret('APPTIVO_FIRM_ID') or _secret('session.firm_id') or ""
    return SessionCredentials(email_id=email, password=password, firm_id=firm_id)


def get_backoff_policy() -> BackoffPolicy:
    """Default retry settings for remote calls."""
    return BackoffPolicy(
        max_retries=int(get_config('api.retries')),
        sleep_seconds=float(get_config('api.sleep_seconds')),
        backoff_factor=float(get_config('api.backoff_factor')),
    )


def get_base_url() -> str:
    return str(get_config('api.base_url'))


def get_timeout() -> float:
    return float(get_config('api.timeout_seconds'))


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration keys: {sorted(config_dict)}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
