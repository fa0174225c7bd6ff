"""
On-disk layout of the devnet state directory.

    <state_root>/
        network.json            network-level status record
        bin/                    fetched external binaries
        <component>/
            config/             generated config files
            data/               chain home / relayer data
                .localnet-initialized  first-start setup completed
            component.log       combined stdout/stderr of the process
            process.lock        liveness record (pid + create time)
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class StateLayout:
    state_root: Path

    @property
    def network_file(self) -> Path:
        return self.state_root / "network.json"

    @property
    def bin_dir(self) -> Path:
        return self.state_root / "bin"

    def component_dir(self, name: str) -> Path:
        return self.state_root / name

    def config_dir(self, name: str) -> Path:
        return self.component_dir(name) / "config"

    def data_dir(self, name: str) -> Path:
        return self.component_dir(name) / "data"

    def log_file(self, name: str) -> Path:
        return self.component_dir(name) / "component.log"

    def lock_file(self, name: str) -> Path:
        return self.component_dir(name) / "process.lock"

    def init_marker(self, name: str) -> Path:
        """Written once first-start initialization has fully succeeded."""
        return self.data_dir(name) / ".localnet-initialized"

    def ensure(self, name: str) -> Path:
        """Create the component's directory tree and return its root."""
        self.config_dir(name).mkdir(parents=True, exist_ok=True)
        self.data_dir(name).mkdir(parents=True, exist_ok=True)
        return self.component_dir(name)
