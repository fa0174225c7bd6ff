"""
Test orchestration mode.

Runs dist, deployment and the end-to-end test command against a local
network. When a network is already running the runner attaches and leaves
its lifecycle alone; otherwise it starts one and guarantees it is stopped
again however the run ends.
"""

import logging
import os
import shlex
from pathlib import Path
from typing import Dict, List, Optional

from ..builder import ArtifactBuilder
from ..errors import DeploymentFailure, Interrupted, TestFailure
from ..models.config import AppConfig
from ..models.runtime import NetworkState
from ..system.commands import command_to_str, run_command
from ..validation import ErrorSeverity, handle_error
from .network import NetworkController

logger = logging.getLogger(__name__)

ARGS_PLACEHOLDER = "{args}"


def render_test_command(template: str, selector: Optional[str]) -> List[str]:
    """
    Expand the test command template with the test selector.

    The `{args}` word is replaced by the selector's words, or dropped
    entirely when there is no selector.
    """
    selector_words = shlex.split(selector) if selector else []
    argv: List[str] = []
    for word in shlex.split(template):
        if word == ARGS_PLACEHOLDER:
            argv.extend(selector_words)
        else:
            argv.append(word)
    return argv


class E2ERunner:
    """
    Dist + deploy + test against a managed or attached network.

    Args:
        config: Validated application configuration
        controller: Network controller; created from `config` when omitted
        builder: Artifact builder; created from `config` when omitted
    """

    def __init__(
        self,
        config: AppConfig,
        controller: Optional[NetworkController] = None,
        builder: Optional[ArtifactBuilder] = None,
    ):
        self.config = config
        self.controller = controller or NetworkController(config)
        self.builder = builder or ArtifactBuilder(config)
        self.workdir = config.e2e.workdir or config.general.workspace_root

    def test_environment(self) -> Dict[str, str]:
        env = {
            "LOCALNET_STATE_ROOT": str(self.config.general.state_root),
            "LOCALNET_ARTIFACTS_DIR": str(self.config.artifacts.output_dir),
            # Network is already up and artifacts are fresh
            self.config.e2e.skip_dist_env: "1",
        }
        for chain in self.config.chains:
            key = chain.name.upper().replace("-", "_").replace(".", "_")
            env[f"LOCALNET_{key}_RPC"] = f"http://127.0.0.1:{chain.rpc_port}"
        return env

    def run(self, test_selector: Optional[str] = None) -> None:
        """
        Run the end-to-end suite.

        Raises:
            BuildFailure: If dist fails
            DeploymentFailure: If the deployment command exits non-zero
            TestFailure: If the test command exits non-zero
            PartialStartFailure: If the network could not be started
            Interrupted: If a shutdown signal arrived
        """
        if self.controller.attach():
            logger.info("Running tests against the already-running network")
            self._run_steps(test_selector)
            return

        logger.info("No running network found; starting one for this test run")
        owns_network = False
        try:
            # start() attaches instead if another invocation won the race
            owns_network = not self.controller.start().attached
            self._run_steps(test_selector)
        except BaseException:
            logger.error(f"Test run failed; network status before teardown:\n{self.controller.status().describe()}")
            raise
        finally:
            if owns_network or self.controller.network_state == NetworkState.FAILED:
                self._teardown()

    def _teardown(self) -> None:
        try:
            report = self.controller.stop()
        except Exception as e:
            handle_error(
                error=e,
                context="stopping the network after the test run",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            return
        for warning in report.warnings:
            logger.warning(f"Stop warning: {warning}")

    def _check_interrupted(self) -> None:
        if self.controller.state.shutdown_requested.is_set():
            raise Interrupted("test run interrupted")

    def _run_steps(self, test_selector: Optional[str]) -> None:
        self._check_interrupted()
        if os.environ.get(self.config.e2e.skip_dist_env):
            logger.info(f"{self.config.e2e.skip_dist_env} is set, skipping dist")
        else:
            self.builder.build()

        self._check_interrupted()
        self.deploy()

        self._check_interrupted()
        self.run_tests(test_selector)

    def deploy(self) -> None:
        command = self.config.e2e.deploy_command
        if not command:
            logger.debug("No deployment command configured")
            return
        logger.info(f"Deploying: {command}")
        returncode, _, _ = run_command(command, cwd=Path(self.workdir), env=self.test_environment(), capture=False)
        if returncode != 0:
            self._check_interrupted()
            raise DeploymentFailure(returncode, command)

    def run_tests(self, test_selector: Optional[str]) -> None:
        argv = render_test_command(self.config.e2e.test_command_template, test_selector)
        logger.info(f"Running tests: {command_to_str(argv)}")
        env = {"RUST_LOG": os.environ.get("RUST_LOG", "info")}
        env.update(self.test_environment())
        returncode, _, _ = run_command(argv, cwd=Path(self.workdir), env=env, capture=False)
        if returncode != 0:
            # The test process shares our terminal, so Ctrl-C reaches it too
            self._check_interrupted()
            raise TestFailure(returncode, command_to_str(argv))
        logger.info("End-to-end tests passed")
