"""
Integration tests: full network lifecycles with real child processes.

Chains and relayers are the fake node script, so these tests exercise real
spawning, readiness probing, lock files and process-tree termination.
"""

import os
import signal
import threading
import time

import pytest

from conftest import chain_entry
from localnet.errors import PartialStartFailure, ResourceBusy
from localnet.models.runtime import NetworkState, ProcessState
from localnet.orchestration import NetworkController
from localnet.state import CleanScope, StateDirectoryManager, StateLayout, read_network_record
from localnet.system.processes import is_pid_alive


def wait_for_file(path, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if path.exists() and path.read_text().strip():
            return path.read_text().strip()
        time.sleep(0.02)
    raise AssertionError(f"{path} was never written")


@pytest.mark.integration
@pytest.mark.slow
class TestNetworkLifecycle:

    def test_start_status_stop(self, app_config):
        controller = NetworkController(app_config)
        layout = StateLayout(app_config.general.state_root)

        result = controller.start()

        assert result.attached is False
        status = controller.status()
        assert status.state == NetworkState.UP
        assert all(child.state == ProcessState.READY for child in status.children.values())
        pids = {name: handle.pid for name, handle in controller.handles.items()}
        assert set(pids) == {"c1", "c2", "r1"}
        assert read_network_record(layout.network_file).state == NetworkState.UP

        report = controller.stop()

        assert report.clean
        assert report.stopped == ["r1", "c2", "c1"]
        assert controller.network_state == NetworkState.DOWN
        assert not any(is_pid_alive(pid) for pid in pids.values())
        assert not any(layout.lock_file(name).exists() for name in pids)
        assert not layout.network_file.exists()

    def test_chain_killed_during_start_rolls_back(self, make_config, sample_config_data, temp_dir):
        c1_pid_file = temp_dir / "c1.pid"
        c2_pid_file = temp_dir / "c2.pid"
        sample_config_data["chains"] = [
            chain_entry("c1", 26001, "neutron", ready_after=3, pid_file=c1_pid_file),
            chain_entry("c2", 26011, "gaia", ready_after=30, pid_file=c2_pid_file),
        ]
        controller = NetworkController(make_config(sample_config_data))

        def kill_c2():
            os.kill(int(wait_for_file(c2_pid_file)), signal.SIGKILL)

        killer = threading.Thread(target=kill_c2)
        killer.start()
        try:
            with pytest.raises(PartialStartFailure) as exc_info:
                controller.start()
        finally:
            killer.join()

        failure = exc_info.value
        assert "c2" in failure.failed
        assert "c1" in failure.aborted
        assert failure.succeeded == []
        assert controller.network_state == NetworkState.FAILED
        assert not is_pid_alive(int(c1_pid_file.read_text()))
        assert not is_pid_alive(int(c2_pid_file.read_text()))
        assert controller.status().live_children == []

        controller.stop()
        assert controller.network_state == NetworkState.DOWN

    def test_second_controller_attaches(self, app_config):
        owner = NetworkController(app_config)
        owner.start()
        try:
            visitor = NetworkController(app_config)

            result = visitor.start()

            assert result.attached is True
            assert visitor.supervisor.spawn_count == 0
            assert visitor.status().state == NetworkState.UP
            assert {name: h.pid for name, h in visitor.handles.items()} == {
                name: h.pid for name, h in owner.handles.items()
            }
        finally:
            owner.stop()

    def test_clean_refused_while_running(self, app_config):
        controller = NetworkController(app_config)
        controller.start()
        layout = StateLayout(app_config.general.state_root)
        try:
            with pytest.raises(ResourceBusy):
                StateDirectoryManager(app_config).clean(CleanScope.STATE_ONLY)
            assert layout.component_dir("c1").exists()
        finally:
            controller.stop()

        StateDirectoryManager(app_config).clean(CleanScope.STATE_ONLY)
        assert not layout.component_dir("c1").exists()
