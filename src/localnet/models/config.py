"""
Configuration data models.

This module contains the configuration structures for chains, relayers,
contracts and the orchestrator itself, as loaded from `localnet.toml`.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple


class ChainType(Enum):
    """Node software variants the orchestrator knows how to launch."""

    NEUTRON = "neutron"
    GAIA = "gaia"


class RelayerKind(Enum):
    """Relayer variants the orchestrator knows how to launch."""

    # General-purpose IBC packet relayer
    HERMES = "hermes"
    # Interchain-query relayer
    ICQ = "icq"


class ProbeKind(Enum):
    """Mechanisms for deciding that a spawned process is ready."""

    RPC_HEIGHT = "rpc_height"
    TCP = "tcp"
    LOG_MARKER = "log_marker"
    FILE_MARKER = "file_marker"
    COMMAND = "command"


@dataclass(frozen=True)
class ProbeConfig:
    """
    Readiness probe settings for one chain or relayer.

    `target` is a template expanded against the component's launch
    variables ({rpc_port}, {home}, {log_file}, ...) before use.
    """

    kind: ProbeKind
    # URL, host:port, regex, path or command depending on kind
    target: str
    # Minimum block height for RPC_HEIGHT probes
    min_height: int = 1
    # Seconds between probe attempts
    interval: float = 0.5
    # Seconds before giving up; None means the orchestrator default for the tier
    timeout: Optional[float] = None
    # Regex a COMMAND probe's stdout must match; None accepts any exit-0 run
    expect: Optional[str] = None


@dataclass(frozen=True)
class ChainSpec:
    """
    A single chain node instance in the local network.

    Immutable once a network instance is constructed. The state directory is
    derived from the state root and `name`.
    """

    name: str
    chain_type: ChainType
    chain_id: str
    # Executable name or path
    binary: str
    rpc_port: int
    grpc_port: int
    p2p_port: int
    readiness: ProbeConfig
    # Command that installs `binary` under the state root's bin/ directory
    fetch_command: Optional[str] = None
    # Genesis file copied into the node home before the first start
    genesis_template: Optional[Path] = None
    # Overrides the variant's default init commands when set
    init_commands: Optional[Tuple[str, ...]] = None
    # Overrides the variant's default launch command when set
    command: Optional[str] = None
    extra_args: Tuple[str, ...] = ()
    env: Dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class RelayerSpec:
    """
    A relayer instance connecting two or more chains.

    `chains` lists ChainSpec names in connection order.
    """

    name: str
    kind: RelayerKind
    chains: Tuple[str, ...]
    binary: str
    readiness: ProbeConfig
    # Template rendered into the relayer's config directory
    config_template: Optional[Path] = None
    fetch_command: Optional[str] = None
    # One-time setup run after the chains are up; None means the kind's defaults
    init_commands: Optional[Tuple[str, ...]] = None
    command: Optional[str] = None
    extra_args: Tuple[str, ...] = ()
    env: Dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class ContractConfig:
    """A contract crate compiled into a deployable artifact."""

    # Artifact name, e.g. "multiple_ica_icq"
    name: str
    # Cargo package name, e.g. "multiple-ica-icq"
    package: str
    # Source directory fingerprinted for freshness
    source_dir: Path


@dataclass
class GeneralConfig:
    """[general] section."""

    workspace_root: Path
    state_root: Path


@dataclass
class TimeoutConfig:
    """[timeouts] section, all values in seconds."""

    probe_interval: float = 0.5
    chain_ready_timeout: float = 120.0
    relayer_ready_timeout: float = 300.0
    stop_grace_period: float = 10.0


@dataclass
class ArtifactsConfig:
    """[artifacts] section describing the dist pipeline."""

    output_dir: Path
    build_command_template: str
    # Where the compiler leaves its output; expanded with {name} and {package}
    compiled_path_template: str
    optimize_command_template: Optional[str] = None
    manifest_name: str = "manifest.json"
    checksums_name: str = "checksums.txt"
    # Workspace-relative files or directories that invalidate every contract
    shared_inputs: List[str] = field(default_factory=list)


@dataclass
class E2EConfig:
    """[e2e] section for test orchestration mode."""

    test_command_template: str
    deploy_command: Optional[str] = None
    workdir: Optional[Path] = None
    skip_dist_env: str = "E2E_NO_DIST"


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    general: GeneralConfig
    timeouts: TimeoutConfig
    artifacts: ArtifactsConfig
    contracts: List[ContractConfig]
    chains: List[ChainSpec]
    relayers: List[RelayerSpec]
    e2e: E2EConfig

    def chain(self, name: str) -> ChainSpec:
        for spec in self.chains:
            if spec.name == name:
                return spec
        raise KeyError(name)

    @property
    def component_names(self) -> List[str]:
        """Chains first, then relayers, in configuration order."""
        return [c.name for c in self.chains] + [r.name for r in self.relayers]
