"""
Orchestration module for the local network.

Components:
- ProcessSupervisor: spawn, readiness-poll and stop individual processes
- ReadinessProbe: per-kind readiness checks
- LaunchPlanner: first-start preparation and command expansion
- NetworkController: the two-barrier start/stop state machine
- E2ERunner: dist + deploy + test in attach or manage mode
- SignalHandler: routes SIGINT/SIGTERM to active controllers
"""

from .e2e import E2ERunner, render_test_command
from .launch import LaunchPlan, LaunchPlanner
from .network import NetworkController
from .probes import ReadinessProbe, parse_block_height
from .process_manager import ProcessSupervisor
from .shared_state import RuntimeState, TimeoutConstants
from .signal_handler import SignalHandler, handle_signals

__all__ = [
    "E2ERunner",
    "LaunchPlan",
    "LaunchPlanner",
    "NetworkController",
    "ProcessSupervisor",
    "ReadinessProbe",
    "RuntimeState",
    "SignalHandler",
    "TimeoutConstants",
    "handle_signals",
    "parse_block_height",
    "render_test_command",
]
