"""
Configuration management and singleton pattern.

The validated AppConfig is loaded once per process and cached; tests and the
CLI redirect it with set_config_path().
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ..models.config import AppConfig
from .loader import load_toml_file
from .validators import validate_app_config

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LOCALNET_CONFIG"

# --- Global Singleton for Configuration ---

_CONFIG: Optional[AppConfig] = None

# Resolved against the working directory, so running from a workspace root
# picks up its conf/localnet.toml. Overridable via LOCALNET_CONFIG or
# set_config_path().
_CONFIG_FILE_PATH = Path(os.environ.get(CONFIG_ENV_VAR, "conf/localnet.toml"))


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path and drop any cached configuration.

    Args:
        config_path: Path to the localnet.toml file
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    _CONFIG = None
    logger.debug(f"Configuration path set to: {config_path}")


def get_config_path() -> Path:
    return _CONFIG_FILE_PATH


def clear_config_cache() -> None:
    """Clear the cached configuration, forcing a reload on next access."""
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def load_config(config_path: Path) -> AppConfig:
    """
    Load and validate the configuration file without touching the cache.

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the file is malformed
    """
    config_path = Path(config_path).resolve()
    data = load_toml_file(config_path, "localnet configuration file")
    app_config = validate_app_config(data, config_path.parent)
    logger.debug(
        f"Loaded configuration with {len(app_config.chains)} chains, "
        f"{len(app_config.relayers)} relayers and {len(app_config.contracts)} contracts"
    )
    return app_config


def get_config() -> AppConfig:
    """
    Get the global application configuration, loading it if necessary.

    Returns:
        The cached AppConfig instance
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    return _CONFIG is not None
