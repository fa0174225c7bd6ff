"""
System interaction utilities.

- Command template expansion and execution with logging
- Executable resolution
- psutil-based liveness checks for recorded pids
"""

from .commands import (
    command_to_str,
    render_command,
    resolve_binary,
    run_command,
)
from .processes import (
    is_pid_alive,
    is_process_alive,
    process_create_time,
)

__all__ = [
    "command_to_str",
    "render_command",
    "resolve_binary",
    "run_command",
    "is_pid_alive",
    "is_process_alive",
    "process_create_time",
]
