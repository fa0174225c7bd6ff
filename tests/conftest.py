"""
Pytest configuration and shared fixtures for the localnet test suite.

Chains and relayers in tests are played by tests/fixtures/fake_node.py, a
small Python script that logs a readiness marker and then idles.
"""

import os
import shlex
import shutil
import sys
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from localnet.errors import ReadinessTimeout, StartAborted, StopWarning  # noqa: E402
from localnet.models.runtime import LockRecord, ProcessHandle, ProcessState, ProcessStatus  # noqa: E402
from localnet.orchestration.shared_state import RuntimeState  # noqa: E402
from localnet.state import StateLayout, write_lock  # noqa: E402
from localnet.system.processes import process_create_time  # noqa: E402

FAKE_NODE = Path(__file__).parent / "fixtures" / "fake_node.py"
READY_MARKER = "node is ready"


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Helpers
# ============================================================================


def node_command(**options: Any) -> str:
    """Launch template running the fake node with the given options."""
    parts = ["{binary}", shlex.quote(str(FAKE_NODE)), "--name", "{name}"]
    for key, value in options.items():
        flag = "--" + key.replace("_", "-")
        if value is True:
            parts.append(flag)
        else:
            parts.extend([flag, shlex.quote(str(value))])
    return " ".join(parts)


def chain_entry(name: str, base_port: int, chain_type: str = "neutron", **node_options: Any) -> Dict[str, Any]:
    return {
        "name": name,
        "type": chain_type,
        "chain_id": f"{name}-test",
        "binary": sys.executable,
        "rpc_port": base_port,
        "grpc_port": base_port + 1,
        "p2p_port": base_port + 2,
        "init_commands": [],
        "command": node_command(**node_options),
        "readiness": {"kind": "log_marker", "target": READY_MARKER},
    }


def relayer_entry(name: str, chains: List[str], kind: str = "hermes", **node_options: Any) -> Dict[str, Any]:
    return {
        "name": name,
        "kind": kind,
        "chains": chains,
        "binary": sys.executable,
        "init_commands": [],
        "command": node_command(**node_options),
        "readiness": {"kind": "log_marker", "target": READY_MARKER},
    }


# ============================================================================
# Fakes
# ============================================================================


class FakeSupervisor:
    """Records spawn/stop calls; children become ready instantly unless told otherwise."""

    def __init__(self, failures=None, wait_for_cancel=(), stop_warnings=()):
        self.state = RuntimeState()
        self.failures = failures or {}
        self.wait_for_cancel = set(wait_for_cancel)
        self.stop_warnings = set(stop_warnings)
        self.spawn_count = 0
        self.spawned = []
        self.stopped = []
        self.alive = {}
        self._lock = threading.Lock()

    def spawn(self, name, command, workdir, env, probe, timeout, log_path, lock_path=None, cancel_event=None):
        with self._lock:
            self.spawn_count += 1
            self.spawned.append(name)
        if name in self.failures:
            raise self.failures[name]
        if name in self.wait_for_cancel:
            deadline = time.monotonic() + 5.0
            while time.monotonic() < deadline:
                if cancel_event is not None and cancel_event.is_set():
                    raise StartAborted(name, "startup cancelled after a sibling failed")
                if self.state.shutdown_requested.is_set():
                    raise StartAborted(name, "shutdown requested")
                time.sleep(0.01)
            raise ReadinessTimeout(name, 5.0)

        self.alive[name] = True
        return ProcessHandle(
            name=name,
            pid=1000 + self.spawn_count,
            create_time=0.0,
            log_path=log_path,
            probe=probe.config,
            command=list(command),
            lock_path=lock_path,
            ready=True,
        )

    def attach(self, name, record, probe_config, lock_path=None):
        return ProcessHandle(
            name=name,
            pid=record.pid,
            create_time=record.create_time,
            log_path=record.log_path,
            probe=probe_config,
            lock_path=lock_path,
            ready=True,
        )

    def stop(self, handle, grace_period):
        self.stopped.append(handle.name)
        self.alive[handle.name] = False
        if handle.name in self.stop_warnings:
            raise StopWarning(handle.name, "1 process(es) survived SIGKILL")

    def status(self, handle):
        if self.alive.get(handle.name, True):
            return ProcessStatus(ProcessState.READY)
        return ProcessStatus(ProcessState.EXITED, 0)


def write_own_lock(layout: StateLayout, name: str) -> None:
    """Lock pointing at this test process, which is certainly alive."""
    write_lock(
        layout.lock_file(name),
        LockRecord(
            pid=os.getpid(),
            create_time=process_create_time(os.getpid()),
            started_at=time.time(),
            command=["node"],
            log_path=str(layout.log_file(name)),
        ),
    )


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_config_data(temp_dir):
    """Two chains and one relayer played by the fake node."""
    return {
        "general": {
            "workspace_root": str(temp_dir),
            "state_root": str(temp_dir / "state"),
        },
        "timeouts": {
            "probe_interval": 0.05,
            "chain_ready_timeout": 15,
            "relayer_ready_timeout": 15,
            "stop_grace_period": 2,
        },
        "artifacts": {"output_dir": "artifacts"},
        "contracts": [{"name": "counter"}],
        "chains": [
            chain_entry("c1", 26001, "neutron"),
            chain_entry("c2", 26011, "gaia"),
        ],
        "relayers": [relayer_entry("r1", ["c1", "c2"])],
        "e2e": {
            "test_command": f"{shlex.quote(sys.executable)} -c 'import sys; sys.exit(0)' {{args}}",
        },
    }


@pytest.fixture
def make_config(temp_dir):
    """Validate a raw config dictionary into an AppConfig."""
    from localnet.config.validators import validate_app_config

    def _make(data: Dict[str, Any]):
        return validate_app_config(data, temp_dir)

    return _make


@pytest.fixture
def app_config(make_config, sample_config_data):
    return make_config(sample_config_data)


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Write the sample configuration to a TOML file."""
    import toml

    path = temp_dir / "localnet.toml"
    with open(path, "w") as f:
        toml.dump(sample_config_data, f)
    return path


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    yield

    from localnet.config import clear_config_cache, set_config_path

    clear_config_cache()
    set_config_path(Path("conf/localnet.toml"))
