"""
Process inspection helpers built on psutil.
"""

import logging
from typing import Optional

import psutil

logger = logging.getLogger(__name__)

# Create times are floats rounded differently across psutil calls
CREATE_TIME_TOLERANCE = 1.0


def is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def process_create_time(pid: int) -> Optional[float]:
    """Return the create time of `pid`, or None if it does not exist."""
    try:
        return psutil.Process(pid).create_time()
    except (psutil.NoSuchProcess, psutil.AccessDenied, ValueError):
        return None


def is_pid_alive(pid: int, create_time: Optional[float] = None) -> bool:
    """
    Check whether `pid` is running and, if given, started at `create_time`.

    Matching the create time keeps a recycled pid from being mistaken for a
    process recorded by an earlier run.
    """
    if pid <= 0:
        return False
    try:
        process = psutil.Process(pid)
        if create_time is not None and abs(process.create_time() - create_time) > CREATE_TIME_TOLERANCE:
            logger.debug(f"PID {pid} was reused by another process")
            return False
        return is_process_alive(process)
    except (psutil.NoSuchProcess, psutil.AccessDenied, ValueError):
        return False
