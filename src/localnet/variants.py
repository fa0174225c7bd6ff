"""
Launch definitions for the supported chain and relayer variants.

Each ChainType/RelayerKind maps to exactly one variant entry carrying its
launch command template, first-start initialization commands and default
readiness probe. The tables are closed: adding a node flavor means adding an
enum member and a table entry, never loading code at runtime.

Templates are expanded with str.format against the component's launch
variables (see orchestration.launch).
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .models.config import ChainType, ProbeConfig, ProbeKind, RelayerKind


@dataclass(frozen=True)
class ChainVariant:
    launch_template: str
    init_templates: Tuple[str, ...]
    default_probe: ProbeConfig


@dataclass(frozen=True)
class RelayerVariant:
    launch_template: str
    # Run once, after the connected chains are up and before the relayer starts
    init_templates: Tuple[str, ...]
    default_probe: ProbeConfig
    # File name the rendered config_template is written to
    config_file_name: Optional[str]


_COSMOS_START = (
    "{binary} start --home {home}"
    " --rpc.laddr tcp://127.0.0.1:{rpc_port}"
    " --grpc.address 127.0.0.1:{grpc_port}"
    " --p2p.laddr tcp://127.0.0.1:{p2p_port}"
)

_RPC_STATUS_PROBE = ProbeConfig(
    kind=ProbeKind.RPC_HEIGHT,
    target="http://127.0.0.1:{rpc_port}/status",
    min_height=1,
)

CHAIN_VARIANTS: Dict[ChainType, ChainVariant] = {
    ChainType.NEUTRON: ChainVariant(
        launch_template=_COSMOS_START + " --log_level info",
        init_templates=(
            "{binary} init {name} --chain-id {chain_id} --home {home}",
        ),
        default_probe=_RPC_STATUS_PROBE,
    ),
    ChainType.GAIA: ChainVariant(
        launch_template=_COSMOS_START + " --x-crisis-skip-assert-invariants",
        init_templates=(
            "{binary} init {name} --chain-id {chain_id} --home {home} --default-denom uatom",
        ),
        default_probe=_RPC_STATUS_PROBE,
    ),
}

RELAYER_VARIANTS: Dict[RelayerKind, RelayerVariant] = {
    RelayerKind.HERMES: RelayerVariant(
        launch_template="{binary} --config {config_file} start",
        init_templates=(
            "{binary} --config {config_file} create channel"
            " --a-chain {chain_a_id} --b-chain {chain_b_id}"
            " --a-port transfer --b-port transfer --new-client-connection --yes",
        ),
        default_probe=ProbeConfig(
            kind=ProbeKind.COMMAND,
            target=(
                "{binary} --config {config_file} query channel end"
                " --chain {chain_a_id} --port transfer --channel channel-0"
            ),
            expect=r"\bOpen\b",
        ),
        config_file_name="config.toml",
    ),
    RelayerKind.ICQ: RelayerVariant(
        launch_template="{binary} start",
        init_templates=(),
        default_probe=ProbeConfig(kind=ProbeKind.LOG_MARKER, target=r"(?i)starting relayer"),
        config_file_name=None,
    ),
}


def chain_variant(chain_type: ChainType) -> ChainVariant:
    return CHAIN_VARIANTS[chain_type]


def relayer_variant(kind: RelayerKind) -> RelayerVariant:
    return RELAYER_VARIANTS[kind]
