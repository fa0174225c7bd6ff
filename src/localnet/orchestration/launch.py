"""
Launch planning.

Turns a ChainSpec or RelayerSpec into everything the supervisor needs to
spawn it: the resolved binary, the expanded command line, environment, probe
and timeout. First-start preparation also lives here: fetching missing
binaries, one-time chain and relayer initialization and rendering relayer
config templates.
"""

import logging
import shutil
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import SpawnFailure
from ..models.config import AppConfig, ChainSpec, ProbeConfig, ProbeKind, RelayerSpec
from ..state.layout import StateLayout
from ..system.commands import command_to_str, render_command, resolve_binary, run_command
from ..variants import chain_variant, relayer_variant
from .probes import ReadinessProbe
from .shared_state import TimeoutConstants

logger = logging.getLogger(__name__)

ComponentSpec = Union[ChainSpec, RelayerSpec]


@dataclass
class LaunchPlan:
    """A fully expanded spawn request for one component."""

    name: str
    command: List[str]
    workdir: Path
    probe: ReadinessProbe
    timeout: float
    log_path: Path
    lock_path: Path
    env: Dict[str, str] = field(default_factory=dict)


def _key(name: str) -> str:
    """Chain name as usable inside a template identifier."""
    return name.replace("-", "_").replace(".", "_")


class LaunchPlanner:
    """
    Prepares components for launch and builds their LaunchPlans.

    Binary lookups are cached per planner, so a fetch command shared by
    several components runs once per start.
    """

    def __init__(self, config: AppConfig, layout: Optional[StateLayout] = None):
        self.config = config
        self.layout = layout or StateLayout(config.general.state_root)
        self._resolved: Dict[str, str] = {}

    # --- binaries ---

    def resolve(self, name: str, binary: str, fetch_command: Optional[str]) -> str:
        """
        Locate `binary`, running `fetch_command` first if it is missing.

        Raises:
            SpawnFailure: If the binary cannot be found or fetched
        """
        if binary in self._resolved:
            return self._resolved[binary]

        bin_dir = self.layout.bin_dir
        path = resolve_binary(binary, [bin_dir])
        if path is None and fetch_command:
            bin_dir.mkdir(parents=True, exist_ok=True)
            argv = render_command(
                fetch_command,
                {
                    "binary": binary,
                    "bin_dir": bin_dir,
                    "name": name,
                    "workspace_root": self.config.general.workspace_root,
                },
            )
            logger.info(f"Fetching {binary} for {name}: {command_to_str(argv)}")
            returncode, _, stderr = run_command(
                argv,
                cwd=self.config.general.workspace_root,
                timeout=TimeoutConstants.FETCH_COMMAND_TIMEOUT,
            )
            if returncode != 0:
                raise SpawnFailure(name, f"fetching '{binary}' failed with exit code {returncode}: {stderr.strip()[-500:]}")
            path = resolve_binary(binary, [bin_dir])

        if path is None:
            raise SpawnFailure(name, f"executable '{binary}' not found in {bin_dir} or PATH")
        self._resolved[binary] = path
        return path

    # --- variables ---

    def _common_variables(self, name: str, binary: str) -> Dict[str, Any]:
        return {
            "name": name,
            "binary": binary,
            "home": self.layout.data_dir(name),
            "config_dir": self.layout.config_dir(name),
            "state_dir": self.layout.component_dir(name),
            "log_file": self.layout.log_file(name),
            "workspace_root": self.config.general.workspace_root,
            "state_root": self.config.general.state_root,
            "bin_dir": self.layout.bin_dir,
        }

    def chain_variables(self, spec: ChainSpec, binary: Optional[str] = None) -> Dict[str, Any]:
        variables = self._common_variables(spec.name, binary or spec.binary)
        variables.update(
            chain_id=spec.chain_id,
            rpc_port=spec.rpc_port,
            grpc_port=spec.grpc_port,
            p2p_port=spec.p2p_port,
        )
        return variables

    def relayer_variables(self, spec: RelayerSpec, binary: Optional[str] = None) -> Dict[str, Any]:
        variables = self._common_variables(spec.name, binary or spec.binary)
        for chain_name in spec.chains:
            chain = self.config.chain(chain_name)
            prefix = _key(chain_name)
            variables[f"{prefix}_chain_id"] = chain.chain_id
            variables[f"{prefix}_rpc_port"] = chain.rpc_port
            variables[f"{prefix}_grpc_port"] = chain.grpc_port
            variables[f"{prefix}_p2p_port"] = chain.p2p_port
            variables[f"{prefix}_home"] = self.layout.data_dir(chain_name)
        # Connection endpoints in order, independent of the chain names
        variables["chain_a_id"] = self.config.chain(spec.chains[0]).chain_id
        variables["chain_b_id"] = self.config.chain(spec.chains[1]).chain_id
        variables["config_file"] = self._relayer_config_path(spec)
        return variables

    def _relayer_config_path(self, spec: RelayerSpec) -> Path:
        file_name = relayer_variant(spec.kind).config_file_name
        if file_name is None and spec.config_template is not None:
            file_name = spec.config_template.name.removesuffix(".tmpl")
        return self.layout.config_dir(spec.name) / (file_name or "config.toml")

    # --- first-start preparation ---

    def _run_init_commands(self, name: str, templates, variables: Dict[str, Any], env: Dict[str, str]) -> None:
        for template in templates:
            argv = render_command(template, variables)
            logger.debug(f"{name} init: {command_to_str(argv)}")
            returncode, _, stderr = run_command(
                argv,
                cwd=self.layout.component_dir(name),
                env=env,
                timeout=TimeoutConstants.INIT_COMMAND_TIMEOUT,
            )
            if returncode != 0:
                raise SpawnFailure(
                    name,
                    f"init command '{command_to_str(argv)}' failed with exit code {returncode}: {stderr.strip()[-500:]}",
                    exit_code=returncode,
                )

    def initialize_chain(self, spec: ChainSpec, variables: Dict[str, Any]) -> bool:
        """
        Run init commands unless the chain home was fully initialized before.

        A home without the init marker is left over from an interrupted or
        failed initialization; it is wiped and initialized again. A failure
        here wipes the home too, so the next start retries from scratch.

        Returns:
            True if initialization ran, False if the home was already initialized

        Raises:
            SpawnFailure: If an init command fails
        """
        home = self.layout.data_dir(spec.name)
        marker = self.layout.init_marker(spec.name)
        if marker.exists():
            logger.debug(f"{spec.name} home {home} already initialized")
            return False

        if home.exists() and any(home.iterdir()):
            logger.warning(f"{spec.name} home {home} was not fully initialized; starting over")
            shutil.rmtree(home)
        home.mkdir(parents=True, exist_ok=True)

        templates = spec.init_commands if spec.init_commands is not None else chain_variant(spec.chain_type).init_templates
        logger.info(f"Initializing {spec.name} in {home}")
        try:
            self._run_init_commands(spec.name, templates, variables, self._expand_env(spec.env, variables))
            if spec.genesis_template is not None:
                target = home / "config" / "genesis.json"
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(spec.genesis_template, target)
                logger.debug(f"Installed genesis {spec.genesis_template} for {spec.name}")
        except BaseException:
            shutil.rmtree(home, ignore_errors=True)
            raise

        marker.touch()
        return True

    def initialize_relayer(self, spec: RelayerSpec, variables: Dict[str, Any]) -> bool:
        """
        Run the relayer's one-time setup (keys, clients, connections, channels).

        Runs against live chains, so it must only be called once the chain
        barrier has passed. The marker is written only after every command
        succeeds; a failed setup is retried on the next start.

        Raises:
            SpawnFailure: If an init command fails
        """
        marker = self.layout.init_marker(spec.name)
        if marker.exists():
            logger.debug(f"{spec.name} already set up")
            return False

        templates = spec.init_commands if spec.init_commands is not None else relayer_variant(spec.kind).init_templates
        if templates:
            logger.info(f"Setting up {spec.name} between {', '.join(spec.chains)}")
        self._run_init_commands(spec.name, templates, variables, self._expand_env(spec.env, variables))
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.touch()
        return True

    def render_relayer_config(self, spec: RelayerSpec, variables: Dict[str, Any]) -> Optional[Path]:
        """Render the relayer config template, if any, into its config dir."""
        if spec.config_template is None:
            return None
        template = string.Template(spec.config_template.read_text(encoding="utf-8"))
        rendered = template.safe_substitute({key: str(value) for key, value in variables.items()})
        target = variables["config_file"]
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(rendered, encoding="utf-8")
        logger.debug(f"Rendered {spec.config_template} to {target}")
        return target

    # --- plans ---

    def _expand_env(self, env: Dict[str, str], variables: Dict[str, Any]) -> Dict[str, str]:
        return {key: str(value).format(**variables) for key, value in env.items()}

    def _probe(self, name: str, config: ProbeConfig, variables: Dict[str, Any]) -> ReadinessProbe:
        # Regex markers may contain braces, so they are used verbatim.
        if config.kind == ProbeKind.LOG_MARKER:
            target = config.target
        else:
            target = config.target.format(**variables)
        return ReadinessProbe(
            config,
            target,
            log_path=self.layout.log_file(name),
            cwd=self.layout.component_dir(name),
        )

    def prepare_chain(self, spec: ChainSpec) -> LaunchPlan:
        self.layout.ensure(spec.name)
        binary = self.resolve(spec.name, spec.binary, spec.fetch_command)
        variables = self.chain_variables(spec, binary)
        self.initialize_chain(spec, variables)

        template = spec.command or chain_variant(spec.chain_type).launch_template
        return LaunchPlan(
            name=spec.name,
            command=render_command(template, variables) + list(spec.extra_args),
            workdir=self.layout.component_dir(spec.name),
            probe=self._probe(spec.name, spec.readiness, variables),
            timeout=spec.readiness.timeout or self.config.timeouts.chain_ready_timeout,
            log_path=self.layout.log_file(spec.name),
            lock_path=self.layout.lock_file(spec.name),
            env=self._expand_env(spec.env, variables),
        )

    def prepare_relayer(self, spec: RelayerSpec) -> LaunchPlan:
        self.layout.ensure(spec.name)
        binary = self.resolve(spec.name, spec.binary, spec.fetch_command)
        variables = self.relayer_variables(spec, binary)
        self.render_relayer_config(spec, variables)
        self.initialize_relayer(spec, variables)

        template = spec.command or relayer_variant(spec.kind).launch_template
        return LaunchPlan(
            name=spec.name,
            command=render_command(template, variables) + list(spec.extra_args),
            workdir=self.layout.component_dir(spec.name),
            probe=self._probe(spec.name, spec.readiness, variables),
            timeout=spec.readiness.timeout or self.config.timeouts.relayer_ready_timeout,
            log_path=self.layout.log_file(spec.name),
            lock_path=self.layout.lock_file(spec.name),
            env=self._expand_env(spec.env, variables),
        )

    def prepare(self, spec: ComponentSpec) -> LaunchPlan:
        if isinstance(spec, ChainSpec):
            return self.prepare_chain(spec)
        return self.prepare_relayer(spec)
