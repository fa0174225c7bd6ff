"""
Unit tests for test orchestration mode.

The test command is a small Python script that records its arguments and
environment, then exits with the code found in TEST_EXIT_CODE.
"""

import json
import shlex
import sys
from unittest.mock import Mock, patch

import pytest

from conftest import FakeSupervisor, write_own_lock
from localnet.builder import ArtifactBuilder
from localnet.errors import DeploymentFailure, Interrupted, PartialStartFailure, SpawnFailure, TestFailure
from localnet.models.runtime import NetworkState
from localnet.orchestration.e2e import E2ERunner, render_test_command
from localnet.orchestration.network import NetworkController
from localnet.state import StateLayout

RECORDER = (
    "import json, os, sys; "
    "json.dump({'argv': sys.argv[1:], 'env': dict(os.environ)}, open('test_run.json', 'w')); "
    "sys.exit(int(os.environ.get('TEST_EXIT_CODE', '0')))"
)


@pytest.fixture
def e2e_config(make_config, sample_config_data):
    def _make(deploy_exit_code=None):
        python = shlex.quote(sys.executable)
        sample_config_data["e2e"] = {"test_command": f"{python} -c {shlex.quote(RECORDER)} {{args}}"}
        if deploy_exit_code is not None:
            sample_config_data["e2e"]["deploy_command"] = f"{python} -c 'raise SystemExit({deploy_exit_code})'"
        return make_config(sample_config_data)

    return _make


def make_runner(config, supervisor):
    controller = NetworkController(config, supervisor=supervisor)
    builder = Mock(spec=ArtifactBuilder)
    return E2ERunner(config, controller=controller, builder=builder)


def recorded_run(config):
    return json.loads((config.general.workspace_root / "test_run.json").read_text())


@pytest.mark.unit
class TestRenderTestCommand:

    def test_selector_words_replace_placeholder(self):
        argv = render_test_command("cargo test -p e2e {args} -- --nocapture", "multiple_ica_icq --exact")

        assert argv == ["cargo", "test", "-p", "e2e", "multiple_ica_icq", "--exact", "--", "--nocapture"]

    def test_no_selector_drops_placeholder(self):
        argv = render_test_command("cargo test -p e2e {args} -- --test-threads 1", None)

        assert argv == ["cargo", "test", "-p", "e2e", "--", "--test-threads", "1"]


@pytest.mark.unit
class TestManageMode:
    """No network is running: the runner owns start and stop."""

    def test_full_run(self, e2e_config, monkeypatch):
        monkeypatch.delenv("E2E_NO_DIST", raising=False)
        config = e2e_config()
        supervisor = FakeSupervisor()
        runner = make_runner(config, supervisor)

        runner.run("ibc_transfer_roundtrip")

        assert supervisor.spawn_count == 3
        assert supervisor.stopped == ["r1", "c2", "c1"]
        runner.builder.build.assert_called_once_with()
        assert runner.controller.status().state == NetworkState.DOWN
        run = recorded_run(config)
        assert run["argv"] == ["ibc_transfer_roundtrip"]
        assert run["env"]["LOCALNET_C1_RPC"] == "http://127.0.0.1:26001"
        assert run["env"]["LOCALNET_STATE_ROOT"] == str(config.general.state_root)
        assert run["env"]["E2E_NO_DIST"] == "1"

    def test_test_failure_still_stops(self, e2e_config, monkeypatch):
        monkeypatch.setenv("TEST_EXIT_CODE", "101")
        config = e2e_config()
        supervisor = FakeSupervisor()
        runner = make_runner(config, supervisor)

        with pytest.raises(TestFailure) as exc_info:
            runner.run()

        assert exc_info.value.returncode == 101
        assert supervisor.stopped == ["r1", "c2", "c1"]
        assert runner.controller.status().state == NetworkState.DOWN

    def test_deployment_failure_skips_tests(self, e2e_config):
        config = e2e_config(deploy_exit_code=2)
        supervisor = FakeSupervisor()
        runner = make_runner(config, supervisor)

        with pytest.raises(DeploymentFailure) as exc_info:
            runner.run()

        assert exc_info.value.returncode == 2
        assert not (config.general.workspace_root / "test_run.json").exists()
        assert supervisor.stopped == ["r1", "c2", "c1"]

    def test_start_failure_propagates(self, e2e_config):
        config = e2e_config()
        supervisor = FakeSupervisor(failures={"c1": SpawnFailure("c1", "exited with code 1", exit_code=1)})
        runner = make_runner(config, supervisor)

        with pytest.raises(PartialStartFailure):
            runner.run()

        runner.builder.build.assert_not_called()
        assert runner.controller.status().state == NetworkState.DOWN

    def test_stop_error_does_not_mask_test_failure(self, e2e_config, monkeypatch):
        monkeypatch.setenv("TEST_EXIT_CODE", "1")
        config = e2e_config()
        runner = make_runner(config, FakeSupervisor())

        with patch.object(runner.controller, "stop", side_effect=RuntimeError("stop exploded")):
            with pytest.raises(TestFailure):
                runner.run()

    def test_no_dist_env_skips_build(self, e2e_config, monkeypatch):
        monkeypatch.setenv("E2E_NO_DIST", "1")
        config = e2e_config()
        runner = make_runner(config, FakeSupervisor())

        runner.run()

        runner.builder.build.assert_not_called()

    def test_interrupted_test_command_reports_interrupt(self, e2e_config):
        config = e2e_config()
        supervisor = FakeSupervisor()
        runner = make_runner(config, supervisor)

        def killed_by_ctrl_c(*args, **kwargs):
            runner.controller.state.shutdown_requested.set()
            return 130, "", ""

        with patch("localnet.orchestration.e2e.run_command", side_effect=killed_by_ctrl_c):
            with pytest.raises(Interrupted):
                runner.run()

        assert supervisor.stopped == ["r1", "c2", "c1"]
        assert runner.controller.status().state == NetworkState.DOWN


@pytest.mark.unit
class TestAttachMode:
    """A network is already running: the runner never starts or stops it."""

    def test_attach_mode_leaves_network_alone(self, e2e_config, monkeypatch):
        monkeypatch.delenv("E2E_NO_DIST", raising=False)
        config = e2e_config()
        layout = StateLayout(config.general.state_root)
        for name in config.component_names:
            write_own_lock(layout, name)
        supervisor = FakeSupervisor()
        runner = make_runner(config, supervisor)

        with patch.object(runner.controller, "start") as start, patch.object(runner.controller, "stop") as stop:
            runner.run("multiple_ica_icq")

        start.assert_not_called()
        stop.assert_not_called()
        assert supervisor.spawn_count == 0
        assert supervisor.stopped == []
        runner.builder.build.assert_called_once_with()
        assert recorded_run(config)["argv"] == ["multiple_ica_icq"]

    def test_attach_mode_test_failure(self, e2e_config, monkeypatch):
        monkeypatch.setenv("TEST_EXIT_CODE", "3")
        config = e2e_config()
        layout = StateLayout(config.general.state_root)
        for name in config.component_names:
            write_own_lock(layout, name)
        supervisor = FakeSupervisor()
        runner = make_runner(config, supervisor)

        with pytest.raises(TestFailure):
            runner.run()

        assert supervisor.stopped == []
        assert runner.controller.status().state == NetworkState.UP

    def test_network_started_elsewhere_during_start_is_left_running(self, e2e_config):
        config = e2e_config()
        layout = StateLayout(config.general.state_root)
        for name in config.component_names:
            write_own_lock(layout, name)
        supervisor = FakeSupervisor()
        runner = make_runner(config, supervisor)
        real_attach = runner.controller.attach
        attach_calls = []

        def attach_after_first_miss():
            # The first lookup misses; another invocation finishes starting
            # before start() looks again.
            attach_calls.append(1)
            return False if len(attach_calls) == 1 else real_attach()

        with patch.object(runner.controller, "attach", side_effect=attach_after_first_miss):
            runner.run()

        assert len(attach_calls) == 2
        assert supervisor.spawn_count == 0
        assert supervisor.stopped == []
        status = runner.controller.status()
        assert status.state == NetworkState.UP
        assert status.attached
        assert all(layout.lock_file(name).exists() for name in config.component_names)
