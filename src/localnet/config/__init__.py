"""
Configuration management for the localnet package.

This module provides a clean interface for loading, validating, and accessing
configuration data from the TOML file with a cached singleton.
"""

from .manager import (
    clear_config_cache,
    get_config,
    get_config_path,
    is_config_loaded,
    load_config,
    set_config_path,
)
from .loader import load_toml_file
from .validators import validate_app_config

__all__ = [
    "get_config",
    "get_config_path",
    "set_config_path",
    "clear_config_cache",
    "is_config_loaded",
    "load_config",
    "load_toml_file",
    "validate_app_config",
]
