"""
Shared runtime state and constants for the orchestration module.
"""

import threading
from dataclasses import dataclass, field


@dataclass
class RuntimeState:
    """
    State shared between the controller, its supervisor and the signal handler.

    `shutdown_requested` is set from the signal handler; every blocking loop
    in the orchestrator polls it.
    """

    shutdown_requested: threading.Event = field(default_factory=threading.Event)


class TimeoutConstants:
    """
    Fixed timing values that are not worth exposing in configuration.
    """

    # Waiting for SIGKILLed processes to disappear
    TERMINATION_FORCE_TIMEOUT = 3.0

    # Reaping an owned child after termination
    REAP_TIMEOUT = 2.0

    # Single readiness probe attempt (HTTP request, TCP connect, command)
    PROBE_ATTEMPT_TIMEOUT = 5.0

    # Foreground loop of start-local
    FOREGROUND_POLL_INTERVAL = 1.0

    # First-start init commands (node init, key setup)
    INIT_COMMAND_TIMEOUT = 120.0

    # Fetching external binaries
    FETCH_COMMAND_TIMEOUT = 1800.0
