"""
Data models for the devnet orchestrator.

Configuration Models:
- Chain and relayer specifications, readiness probes
- Contract targets and the dist pipeline settings

Runtime Models:
- Process handles and statuses
- Network lifecycle states, status snapshots, stop reports
- Lock and network records persisted in the state directory

Artifact Models:
- Build artifacts recorded in the dist manifest
"""

from .config import (
    AppConfig,
    ArtifactsConfig,
    ChainSpec,
    ChainType,
    ContractConfig,
    E2EConfig,
    GeneralConfig,
    ProbeConfig,
    ProbeKind,
    RelayerKind,
    RelayerSpec,
    TimeoutConfig,
)
from .runtime import (
    LockRecord,
    NetworkRecord,
    NetworkState,
    NetworkStatus,
    ProcessHandle,
    ProcessState,
    ProcessStatus,
    StartResult,
    StopReport,
)
from .artifacts import BuildArtifact

__all__ = [
    # Configuration
    "AppConfig",
    "ArtifactsConfig",
    "ChainSpec",
    "ChainType",
    "ContractConfig",
    "E2EConfig",
    "GeneralConfig",
    "ProbeConfig",
    "ProbeKind",
    "RelayerKind",
    "RelayerSpec",
    "TimeoutConfig",
    # Runtime
    "LockRecord",
    "NetworkRecord",
    "NetworkState",
    "NetworkStatus",
    "ProcessHandle",
    "ProcessState",
    "ProcessStatus",
    "StartResult",
    "StopReport",
    # Artifacts
    "BuildArtifact",
]
