"""
Unit tests for the command-line interface.
"""

from unittest.mock import patch

import pytest

from conftest import write_own_lock
from localnet.cli.main import EXIT_INTERRUPTED, build_parser, main_cli
from localnet.errors import Interrupted, TestFailure
from localnet.models.runtime import StartResult
from localnet.state import StateLayout


def run_cli(*argv: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main_cli(list(argv))
    return exc_info.value.code


@pytest.mark.unit
class TestParser:

    def test_test_e2e_passes_remaining_args(self):
        args = build_parser().parse_args(["test", "e2e", "multiple_ica_icq", "--exact"])

        assert args.command == "test"
        assert args.test_kind == "e2e"
        assert args.args == ["multiple_ica_icq", "--exact"]

    def test_dist_options(self):
        args = build_parser().parse_args(["dist", "--force", "counter"])

        assert args.force is True
        assert args.contracts == ["counter"]

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


@pytest.mark.unit
class TestCommands:

    def test_missing_config_exits_1(self, temp_dir):
        assert run_cli("--config", str(temp_dir / "missing.toml"), "status") == 1

    def test_status_when_down(self, config_file, capsys):
        assert run_cli("--config", str(config_file), "status") == 0

        assert "network: down" in capsys.readouterr().out

    def test_clean_local_state(self, config_file, app_config):
        layout = StateLayout(app_config.general.state_root)
        layout.ensure("c1")

        assert run_cli("--config", str(config_file), "clean-local-state") == 0
        assert not layout.component_dir("c1").exists()

    def test_clean_while_running_exits_1(self, config_file, app_config):
        layout = StateLayout(app_config.general.state_root)
        write_own_lock(layout, "c1")

        assert run_cli("--config", str(config_file), "clean-local-all") == 1
        assert layout.lock_file("c1").exists()

    def test_dist_unknown_contract_exits_1(self, config_file):
        assert run_cli("--config", str(config_file), "dist", "nope") == 1

    def test_test_e2e_selector(self, config_file):
        with patch("localnet.cli.main.E2ERunner") as runner_cls:
            assert run_cli("--config", str(config_file), "test", "e2e", "multiple_ica_icq", "--exact") == 0

        runner_cls.return_value.run.assert_called_once_with("multiple_ica_icq --exact")

    def test_test_e2e_without_selector(self, config_file):
        with patch("localnet.cli.main.E2ERunner") as runner_cls:
            assert run_cli("--config", str(config_file), "test", "e2e") == 0

        runner_cls.return_value.run.assert_called_once_with(None)

    def test_test_failure_exits_1(self, config_file):
        with patch("localnet.cli.main.E2ERunner") as runner_cls:
            runner_cls.return_value.run.side_effect = TestFailure(101, "cargo test")
            assert run_cli("--config", str(config_file), "test", "e2e") == 1

    def test_interrupt_exits_130(self, config_file):
        with patch("localnet.cli.main.E2ERunner") as runner_cls:
            runner_cls.return_value.run.side_effect = Interrupted("test run interrupted")
            assert run_cli("--config", str(config_file), "test", "e2e") == EXIT_INTERRUPTED

    def test_start_local_when_already_running(self, config_file):
        with patch("localnet.cli.main.NetworkController") as controller_cls:
            controller = controller_cls.return_value
            controller.start.return_value = StartResult(attached=True, components=["c1", "c2", "r1"])
            controller.status.return_value.describe.return_value = "network: up (attached)"

            assert run_cli("--config", str(config_file), "start-local") == 0

        controller.wait_until_interrupted.assert_not_called()
        controller.stop.assert_not_called()

    def test_start_local_foreground_then_stop(self, config_file):
        with patch("localnet.cli.main.NetworkController") as controller_cls:
            controller = controller_cls.return_value
            controller.start.return_value = StartResult(attached=False, components=["c1", "c2", "r1"])
            controller.status.return_value.describe.return_value = "network: up"
            controller.wait_until_interrupted.return_value = None
            controller.stop.return_value.clean = True

            assert run_cli("--config", str(config_file), "start-local") == 0

        controller.stop.assert_called_once_with()
