"""
Configuration validation utilities.

This module turns the raw TOML dictionaries into validated configuration
models, applying per-variant defaults where a section is omitted.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.config import (
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
from ..validation import (
    ValidationError,
    validate_command_template,
    validate_component_name,
    validate_enum_choice,
    validate_port,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
    validate_string_list,
)
from ..variants import chain_variant, relayer_variant
from .loader import resolve_path, resolve_workspace_root

logger = logging.getLogger(__name__)

DEFAULT_BUILD_COMMAND = "cargo build --release --lib --target wasm32-unknown-unknown -p {package}"
DEFAULT_COMPILED_PATH = "target/wasm32-unknown-unknown/release/{name}.wasm"
DEFAULT_TEST_COMMAND = "cargo test -p e2e {args} -- --nocapture --test-threads 1"


def validate_general_config(general_data: Dict[str, Any], workspace_root: Path) -> GeneralConfig:
    state_root = resolve_path(general_data.get("state_root", ".localnet"), workspace_root)
    if state_root.resolve() == workspace_root.resolve():
        raise ValidationError(
            "general.state_root must not be the workspace root",
            field_name="general.state_root",
            value=str(state_root),
        )
    return GeneralConfig(workspace_root=workspace_root, state_root=state_root)


def validate_timeout_config(timeout_data: Dict[str, Any]) -> TimeoutConfig:
    defaults = TimeoutConfig()
    return TimeoutConfig(
        probe_interval=validate_positive_float(
            timeout_data.get("probe_interval", defaults.probe_interval),
            min_value=0.01,
            max_value=60.0,
            field_name="timeouts.probe_interval",
        ),
        chain_ready_timeout=validate_positive_float(
            timeout_data.get("chain_ready_timeout", defaults.chain_ready_timeout),
            min_value=0.1,
            field_name="timeouts.chain_ready_timeout",
        ),
        relayer_ready_timeout=validate_positive_float(
            timeout_data.get("relayer_ready_timeout", defaults.relayer_ready_timeout),
            min_value=0.1,
            field_name="timeouts.relayer_ready_timeout",
        ),
        stop_grace_period=validate_positive_float(
            timeout_data.get("stop_grace_period", defaults.stop_grace_period),
            min_value=0.0,
            max_value=600.0,
            field_name="timeouts.stop_grace_period",
        ),
    )


def validate_artifacts_config(artifacts_data: Dict[str, Any], workspace_root: Path) -> ArtifactsConfig:
    optimize = artifacts_data.get("optimize_command")
    if optimize is not None:
        optimize = validate_command_template(optimize, field_name="artifacts.optimize_command")
        for placeholder in ("{input}", "{output}"):
            if placeholder not in optimize:
                raise ValidationError(
                    f"artifacts.optimize_command must contain {placeholder}",
                    field_name="artifacts.optimize_command",
                    value=optimize,
                )

    return ArtifactsConfig(
        output_dir=resolve_path(artifacts_data.get("output_dir", "artifacts"), workspace_root),
        build_command_template=validate_command_template(
            artifacts_data.get("build_command", DEFAULT_BUILD_COMMAND),
            field_name="artifacts.build_command",
        ),
        compiled_path_template=artifacts_data.get("compiled_path", DEFAULT_COMPILED_PATH),
        optimize_command_template=optimize,
        manifest_name=artifacts_data.get("manifest_name", "manifest.json"),
        checksums_name=artifacts_data.get("checksums_name", "checksums.txt"),
        shared_inputs=validate_string_list(
            artifacts_data.get("shared_inputs", ["Cargo.toml", "Cargo.lock"]),
            field_name="artifacts.shared_inputs",
        ),
    )


def validate_contracts_config(contracts_data: List[Dict[str, Any]], workspace_root: Path) -> List[ContractConfig]:
    contracts = []
    names: List[str] = []
    for idx, entry in enumerate(contracts_data):
        prefix = f"contracts[{idx}]"
        name = validate_component_name(entry.get("name"), existing_names=names, field_name=f"{prefix}.name")
        names.append(name)
        package = entry.get("package") or name.replace("_", "-")
        source_dir = entry.get("source_dir") or f"contracts/{package}"
        contracts.append(
            ContractConfig(
                name=name,
                package=package,
                source_dir=resolve_path(source_dir, workspace_root),
            )
        )
    return contracts


def validate_probe_config(
    probe_data: Optional[Dict[str, Any]],
    default: ProbeConfig,
    default_interval: float,
    field_name: str,
) -> ProbeConfig:
    """
    Validate a readiness probe section, falling back to the variant default.

    A section that only sets timing fields keeps the default probe kind and
    target.
    """
    probe_data = probe_data or {}
    if "kind" in probe_data:
        kind = validate_enum_choice(probe_data["kind"], ProbeKind, field_name=f"{field_name}.kind")
        target = probe_data.get("target")
        if not isinstance(target, str) or not target:
            raise ValidationError(
                f"{field_name}.target is required when kind is set",
                field_name=f"{field_name}.target",
                value=target,
            )
    else:
        kind = default.kind
        target = probe_data.get("target", default.target)

    if kind == ProbeKind.LOG_MARKER:
        validate_regex_pattern(target, field_name=f"{field_name}.target")
    elif kind == ProbeKind.COMMAND:
        validate_command_template(target, field_name=f"{field_name}.target")

    expect = probe_data.get("expect", default.expect if "kind" not in probe_data else None)
    if expect is not None:
        if kind != ProbeKind.COMMAND:
            raise ValidationError(
                f"{field_name}.expect only applies to command probes",
                field_name=f"{field_name}.expect",
                value=expect,
            )
        validate_regex_pattern(expect, field_name=f"{field_name}.expect")

    timeout = probe_data.get("timeout", default.timeout)
    if timeout is not None:
        timeout = validate_positive_float(timeout, min_value=0.1, field_name=f"{field_name}.timeout")

    return ProbeConfig(
        kind=kind,
        target=target,
        min_height=validate_positive_integer(
            probe_data.get("min_height", default.min_height),
            min_value=0,
            field_name=f"{field_name}.min_height",
        ),
        interval=validate_positive_float(
            probe_data.get("interval", default_interval),
            min_value=0.01,
            max_value=60.0,
            field_name=f"{field_name}.interval",
        ),
        timeout=timeout,
        expect=expect,
    )


def _validate_env(env_data: Any, field_name: str) -> Dict[str, str]:
    if env_data is None:
        return {}
    if not isinstance(env_data, dict):
        raise ValidationError(f"{field_name} must be a table", field_name=field_name, value=env_data)
    return {str(k): str(v) for k, v in env_data.items()}


def validate_chains_config(
    chains_data: List[Dict[str, Any]],
    workspace_root: Path,
    probe_interval: float,
) -> List[ChainSpec]:
    chains = []
    names: List[str] = []
    ports: Dict[int, str] = {}
    for idx, entry in enumerate(chains_data):
        prefix = f"chains[{idx}]"
        name = validate_component_name(entry.get("name"), existing_names=names, field_name=f"{prefix}.name")
        names.append(name)
        chain_type = validate_enum_choice(entry.get("type"), ChainType, field_name=f"{prefix}.type")
        variant = chain_variant(chain_type)

        port_values = {}
        for port_key in ("rpc_port", "grpc_port", "p2p_port"):
            port = validate_port(entry.get(port_key), field_name=f"{prefix}.{port_key}")
            if port in ports:
                raise ValidationError(
                    f"{prefix}.{port_key} {port} is already used by {ports[port]}",
                    field_name=f"{prefix}.{port_key}",
                    value=port,
                )
            ports[port] = f"{name}.{port_key}"
            port_values[port_key] = port

        chain_id = entry.get("chain_id")
        if not isinstance(chain_id, str) or not chain_id:
            raise ValidationError(f"{prefix}.chain_id is required", field_name=f"{prefix}.chain_id", value=chain_id)

        genesis = entry.get("genesis_template")
        init_commands = entry.get("init_commands")
        if init_commands is not None:
            init_commands = tuple(
                validate_command_template(cmd, field_name=f"{prefix}.init_commands")
                for cmd in validate_string_list(init_commands, field_name=f"{prefix}.init_commands")
            )
        command = entry.get("command")
        if command is not None:
            command = validate_command_template(command, field_name=f"{prefix}.command")

        chains.append(
            ChainSpec(
                name=name,
                chain_type=chain_type,
                chain_id=chain_id,
                binary=entry.get("binary") or f"{chain_type.value}d",
                readiness=validate_probe_config(
                    entry.get("readiness"), variant.default_probe, probe_interval, f"{prefix}.readiness"
                ),
                fetch_command=entry.get("fetch_command"),
                genesis_template=resolve_path(genesis, workspace_root) if genesis else None,
                init_commands=init_commands,
                command=command,
                extra_args=tuple(validate_string_list(entry.get("extra_args"), field_name=f"{prefix}.extra_args")),
                env=_validate_env(entry.get("env"), f"{prefix}.env"),
                **port_values,
            )
        )

    if len({c.chain_type for c in chains}) < len(chains):
        logger.warning("Multiple chains share a chain type; this is unusual for an interchain devnet")
    return chains


def validate_relayers_config(
    relayers_data: List[Dict[str, Any]],
    chain_names: List[str],
    workspace_root: Path,
    probe_interval: float,
) -> List[RelayerSpec]:
    relayers = []
    names: List[str] = list(chain_names)
    for idx, entry in enumerate(relayers_data):
        prefix = f"relayers[{idx}]"
        name = validate_component_name(entry.get("name"), existing_names=names, field_name=f"{prefix}.name")
        names.append(name)
        kind = validate_enum_choice(entry.get("kind"), RelayerKind, field_name=f"{prefix}.kind")
        variant = relayer_variant(kind)

        connected = validate_string_list(entry.get("chains"), field_name=f"{prefix}.chains")
        if len(connected) < 2:
            raise ValidationError(
                f"{prefix}.chains must name at least two chains",
                field_name=f"{prefix}.chains",
                value=connected,
            )
        unknown = [c for c in connected if c not in chain_names]
        if unknown:
            raise ValidationError(
                f"{prefix}.chains references unknown chains: {unknown}",
                field_name=f"{prefix}.chains",
                value=connected,
            )

        init_commands = entry.get("init_commands")
        if init_commands is not None:
            init_commands = tuple(
                validate_command_template(cmd, field_name=f"{prefix}.init_commands")
                for cmd in validate_string_list(init_commands, field_name=f"{prefix}.init_commands")
            )
        template = entry.get("config_template")
        command = entry.get("command")
        if command is not None:
            command = validate_command_template(command, field_name=f"{prefix}.command")

        relayers.append(
            RelayerSpec(
                name=name,
                kind=kind,
                chains=tuple(connected),
                binary=entry.get("binary") or kind.value,
                readiness=validate_probe_config(
                    entry.get("readiness"), variant.default_probe, probe_interval, f"{prefix}.readiness"
                ),
                config_template=resolve_path(template, workspace_root) if template else None,
                fetch_command=entry.get("fetch_command"),
                init_commands=init_commands,
                command=command,
                extra_args=tuple(validate_string_list(entry.get("extra_args"), field_name=f"{prefix}.extra_args")),
                env=_validate_env(entry.get("env"), f"{prefix}.env"),
            )
        )
    return relayers


def validate_e2e_config(e2e_data: Dict[str, Any], workspace_root: Path) -> E2EConfig:
    deploy = e2e_data.get("deploy_command")
    if deploy is not None:
        deploy = validate_command_template(deploy, field_name="e2e.deploy_command")
    workdir = e2e_data.get("workdir")
    return E2EConfig(
        test_command_template=validate_command_template(
            e2e_data.get("test_command", DEFAULT_TEST_COMMAND),
            field_name="e2e.test_command",
        ),
        deploy_command=deploy,
        workdir=resolve_path(workdir, workspace_root) if workdir else None,
        skip_dist_env=e2e_data.get("skip_dist_env", "E2E_NO_DIST"),
    )


def validate_app_config(config_data: Dict[str, Any], config_dir: Path) -> AppConfig:
    """
    Validate the full configuration document.

    Args:
        config_data: Parsed TOML document
        config_dir: Directory holding the config file, for relative paths

    Returns:
        Fully validated AppConfig

    Raises:
        ValidationError: If any section is invalid
    """
    workspace_root = resolve_workspace_root(config_data, config_dir)
    general = validate_general_config(config_data.get("general", {}), workspace_root)
    timeouts = validate_timeout_config(config_data.get("timeouts", {}))
    chains = validate_chains_config(config_data.get("chains", []), workspace_root, timeouts.probe_interval)
    if not chains:
        raise ValidationError("at least one [[chains]] entry is required", field_name="chains")

    return AppConfig(
        general=general,
        timeouts=timeouts,
        artifacts=validate_artifacts_config(config_data.get("artifacts", {}), workspace_root),
        contracts=validate_contracts_config(config_data.get("contracts", []), workspace_root),
        chains=chains,
        relayers=validate_relayers_config(
            config_data.get("relayers", []),
            [c.name for c in chains],
            workspace_root,
            timeouts.probe_interval,
        ),
        e2e=validate_e2e_config(config_data.get("e2e", {}), workspace_root),
    )
