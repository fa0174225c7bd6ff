"""
localnet: local multi-chain devnet orchestrator.

Builds contract artifacts, starts chain nodes and relayers in dependency
order, and runs end-to-end tests against the resulting network.

The package is organized into specialized modules:
- config: Configuration loading and validation
- models: Data structures and type definitions
- validation: Input validation and error handling
- system: Command execution and process inspection
- state: State directories, lock files and clean operations
- builder: Contract artifact builds and the dist manifest
- orchestration: Process supervision, network lifecycle and test mode
- cli: Command-line interface

Usage:
    From command line:
        localnet start-local
        python -m localnet.cli.main test e2e [args...]

    Programmatically:
        from localnet import NetworkController, get_config
        controller = NetworkController(get_config())
        with controller.managed():
            ...
"""

from .builder import ArtifactBuilder
from .cli import main_cli
from .config import clear_config_cache, get_config, set_config_path
from .errors import (
    BuildFailure,
    CleanupError,
    DeploymentFailure,
    Interrupted,
    InvalidTransition,
    LocalnetError,
    PartialStartFailure,
    ReadinessTimeout,
    ResourceBusy,
    SpawnFailure,
    StartAborted,
    StopWarning,
    TestFailure,
)
from .models import (
    AppConfig,
    BuildArtifact,
    ChainSpec,
    ChainType,
    NetworkState,
    NetworkStatus,
    ProbeConfig,
    ProbeKind,
    ProcessState,
    RelayerKind,
    RelayerSpec,
)
from .orchestration import E2ERunner, NetworkController, ProcessSupervisor
from .state import CleanScope, StateDirectoryManager
from .validation import ValidationError

__version__ = "0.1.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "main_cli",
    "ArtifactBuilder",
    "CleanScope",
    "E2ERunner",
    "NetworkController",
    "ProcessSupervisor",
    "StateDirectoryManager",
    # Models
    "AppConfig",
    "BuildArtifact",
    "ChainSpec",
    "ChainType",
    "NetworkState",
    "NetworkStatus",
    "ProbeConfig",
    "ProbeKind",
    "ProcessState",
    "RelayerKind",
    "RelayerSpec",
    # Errors
    "LocalnetError",
    "BuildFailure",
    "CleanupError",
    "DeploymentFailure",
    "Interrupted",
    "InvalidTransition",
    "PartialStartFailure",
    "ReadinessTimeout",
    "ResourceBusy",
    "SpawnFailure",
    "StartAborted",
    "StopWarning",
    "TestFailure",
    "ValidationError",
]
