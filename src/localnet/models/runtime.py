"""
Runtime data models.

This module contains the structures that describe live processes and the
network instance while the orchestrator is running, plus the records
persisted to disk to detect instances started by other invocations.
"""

import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ProbeConfig


class ProcessState(Enum):
    STARTING = "starting"
    READY = "ready"
    EXITED = "exited"
    KILLED = "killed"


class NetworkState(Enum):
    DOWN = "down"
    STARTING = "starting"
    UP = "up"
    STOPPING = "stopping"
    FAILED = "failed"


@dataclass(frozen=True)
class ProcessStatus:
    state: ProcessState
    exit_code: Optional[int] = None

    def __str__(self) -> str:
        if self.state == ProcessState.EXITED and self.exit_code is not None:
            return f"exited({self.exit_code})"
        return self.state.value


@dataclass
class ProcessHandle:
    """
    OS-level handle to a spawned chain or relayer process.

    `popen` is None when the handle was attached from a lock record written
    by another orchestrator invocation; liveness then falls back to psutil.
    """

    name: str
    pid: int
    create_time: float
    log_path: Path
    probe: ProbeConfig
    command: List[str] = field(default_factory=list)
    lock_path: Optional[Path] = None
    popen: Optional[subprocess.Popen] = None
    ready: bool = False
    killed: bool = False

    @property
    def owned(self) -> bool:
        """True when this invocation launched the process."""
        return self.popen is not None


@dataclass
class LockRecord:
    """
    Liveness record written into a component's state directory.

    A record is live when `pid` exists and its create time matches, which
    guards against pid reuse after a reboot or crash.
    """

    pid: int
    create_time: float
    started_at: float
    command: List[str]
    log_path: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pid": self.pid,
            "create_time": self.create_time,
            "started_at": self.started_at,
            "command": self.command,
            "log_path": self.log_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockRecord":
        return cls(
            pid=int(data["pid"]),
            create_time=float(data["create_time"]),
            started_at=float(data.get("started_at", 0.0)),
            command=list(data.get("command", [])),
            log_path=str(data.get("log_path", "")),
        )


@dataclass
class NetworkRecord:
    """Network-level status file at the root of the state directory."""

    state: NetworkState
    components: List[str]
    owner_pid: int
    updated_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "components": self.components,
            "owner_pid": self.owner_pid,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkRecord":
        return cls(
            state=NetworkState(data["state"]),
            components=list(data.get("components", [])),
            owner_pid=int(data.get("owner_pid", 0)),
            updated_at=float(data.get("updated_at", 0.0)),
        )


@dataclass
class NetworkStatus:
    """Snapshot returned by the Topology Controller's status()."""

    state: NetworkState
    children: Dict[str, ProcessStatus]
    attached: bool = False
    failure: Optional[Exception] = None

    @property
    def live_children(self) -> List[str]:
        return [
            name for name, status in self.children.items()
            if status.state in (ProcessState.STARTING, ProcessState.READY)
        ]

    def describe(self) -> str:
        """Multi-line, human-readable table for logs and the CLI."""
        lines = [f"network: {self.state.value}" + (" (attached)" if self.attached else "")]
        for name, status in self.children.items():
            lines.append(f"  {name:<16} {status}")
        if self.failure is not None:
            lines.append(f"  cause: {self.failure}")
        return "\n".join(lines)


@dataclass
class StartResult:
    attached: bool
    components: List[str]


@dataclass
class StopReport:
    """Outcome of stop(); warnings never prevent reaching DOWN."""

    stopped: List[str] = field(default_factory=list)
    warnings: List[Exception] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings
