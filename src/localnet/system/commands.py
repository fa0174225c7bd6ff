"""
Command execution utilities.

This module provides functions for expanding command templates, resolving
executables and running short-lived commands (compilers, init steps,
deployment and test commands) to completion.
"""

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


def render_command(template: str, variables: Mapping[str, Any]) -> List[str]:
    """Expand a command template and split it into argv words.

    Placeholders use str.format syntax ({binary}, {home}, ...). Values are
    shell-quoted before substitution, so a path containing spaces still
    becomes a single argument.

    Raises:
        KeyError: If the template references an unknown variable.
    """
    quoted = {key: shlex.quote(str(value)) for key, value in variables.items()}
    return shlex.split(template.format(**quoted))


def command_to_str(command: Command) -> str:
    if isinstance(command, str):
        return command
    return shlex.join(list(command))


def run_command(
    command: Command,
    cwd: Path,
    env: Optional[Mapping[str, str]] = None,
    capture: bool = True,
    timeout: Optional[float] = None,
) -> Tuple[int, str, str]:
    """Execute a command to completion and capture its output.

    Args:
        command: argv list, or a string that is split with shlex.
        cwd: Working directory for the command.
        env: Extra environment variables layered over os.environ.
        capture: Capture stdout/stderr; when False they stream to the terminal.
        timeout: Seconds before the command is killed.

    Returns:
        Tuple of (return_code, stdout_string, stderr_string).
        return_code is -1 when the command could not be executed.
    """
    argv = shlex.split(command) if isinstance(command, str) else list(command)
    full_env = dict(os.environ)
    if env:
        full_env.update(env)

    logger.debug(f"Executing command: '{command_to_str(argv)}' in '{cwd}'")
    try:
        process = subprocess.run(
            argv,
            cwd=cwd,
            env=full_env,
            capture_output=capture,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
        return process.returncode, process.stdout or "", process.stderr or ""
    except FileNotFoundError as e:
        logger.error(f"Command not found: {argv[0] if argv else command}: {e}")
        return -1, "", f"Error: Command not found '{argv[0] if argv else command}'"
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout}s: {command_to_str(argv)}")
        return -1, "", f"Error: timed out after {e.timeout}s"
    except OSError as e:
        logger.error(f"Failed to execute '{command_to_str(argv)}': {type(e).__name__}: {e}")
        return -1, "", f"An unexpected error occurred: {e}"


def resolve_binary(binary: str, extra_dirs: Sequence[Path] = ()) -> Optional[str]:
    """Locate an executable, preferring `extra_dirs` over PATH.

    Paths containing a separator are returned as-is when they exist.
    """
    if os.sep in binary:
        return binary if Path(binary).exists() else None
    for directory in extra_dirs:
        candidate = Path(directory) / binary
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
    return shutil.which(binary)
