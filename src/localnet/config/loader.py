"""
Configuration file loading utilities.

Reading localnet.toml and resolving the paths it contains.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict

from ..validation import handle_config_error, ErrorSeverity

logger = logging.getLogger(__name__)


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Parse a TOML file into a dictionary.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"{description} not found: {file_path}")

    logger.debug(f"Reading {description} {file_path}")
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        handle_config_error(e, f"parsing {file_path}", severity=ErrorSeverity.DEBUG, logger=logger)


def resolve_workspace_root(config_data: Dict[str, Any], config_dir: Path) -> Path:
    """
    Resolve [general].workspace_root relative to the config file's directory.

    Defaults to the parent of the config directory, so `conf/localnet.toml`
    at a repository root makes that repository the workspace.
    """
    raw = config_data.get("general", {}).get("workspace_root", "..")
    root = Path(raw).expanduser()
    if not root.is_absolute():
        root = config_dir / root
    return root.resolve()


def resolve_path(value: str, base: Path) -> Path:
    """Resolve a possibly-relative config path against `base`."""
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path
