"""
Readiness probes.

A probe answers "is this process usable yet?". Any error while probing
(connection refused, malformed response, missing file) means "not yet";
the supervisor decides when to give up.
"""

import logging
import re
import socket
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx

from ..models.config import ProbeConfig, ProbeKind
from ..system.commands import run_command
from .shared_state import TimeoutConstants

logger = logging.getLogger(__name__)


def parse_block_height(payload: dict) -> Optional[int]:
    """
    Extract latest_block_height from a CometBFT /status response.

    Accepts both the JSON-RPC envelope ({"result": {...}}) and the bare
    object some gateways return.
    """
    body = payload.get("result", payload)
    try:
        return int(body["sync_info"]["latest_block_height"])
    except (KeyError, TypeError, ValueError):
        return None


class ReadinessProbe:
    """
    A configured probe bound to one component.

    Args:
        config: Probe settings
        target: The probe target with launch variables already expanded
        log_path: The component's log file (for LOG_MARKER)
        cwd: Working directory for relative paths and COMMAND probes
    """

    def __init__(self, config: ProbeConfig, target: str, log_path: Path, cwd: Path):
        self.config = config
        self.target = target
        self.log_path = log_path
        self.cwd = cwd
        self.attempts = 0
        self._log_offset = 0
        self._log_tail = ""
        self._pattern = re.compile(target) if config.kind == ProbeKind.LOG_MARKER else None

    @property
    def kind(self) -> ProbeKind:
        return self.config.kind

    def skip_existing_log(self) -> None:
        """Ignore log content written before the process being probed started."""
        try:
            self._log_offset = self.log_path.stat().st_size
        except FileNotFoundError:
            self._log_offset = 0
        self._log_tail = ""

    def check(self) -> bool:
        self.attempts += 1
        try:
            return _PROBES[self.config.kind](self)
        except Exception as e:
            logger.debug(f"Probe {self.config.kind.value} '{self.target}' not ready: {type(e).__name__}: {e}")
            return False

    def describe(self) -> str:
        return f"{self.config.kind.value}:{self.target}"


def _probe_rpc_height(probe: ReadinessProbe) -> bool:
    response = httpx.get(probe.target, timeout=TimeoutConstants.PROBE_ATTEMPT_TIMEOUT)
    response.raise_for_status()
    height = parse_block_height(response.json())
    return height is not None and height >= probe.config.min_height


def _probe_tcp(probe: ReadinessProbe) -> bool:
    host, _, port = probe.target.rpartition(":")
    with socket.create_connection((host or "127.0.0.1", int(port)), timeout=TimeoutConstants.PROBE_ATTEMPT_TIMEOUT):
        return True


def _probe_log_marker(probe: ReadinessProbe) -> bool:
    # Read only what was appended since the last attempt; keep the last
    # partial line so a marker split across reads still matches.
    with open(probe.log_path, "rb") as f:
        f.seek(probe._log_offset)
        chunk = f.read().decode("utf-8", errors="replace")
        probe._log_offset = f.tell()
    text = probe._log_tail + chunk
    if probe._pattern.search(text):
        return True
    probe._log_tail = text.rsplit("\n", 1)[-1]
    return False


def _probe_file_marker(probe: ReadinessProbe) -> bool:
    path = Path(probe.target)
    if not path.is_absolute():
        path = probe.cwd / path
    return path.exists()


def _probe_command(probe: ReadinessProbe) -> bool:
    returncode, stdout, _ = run_command(probe.target, cwd=probe.cwd, timeout=TimeoutConstants.PROBE_ATTEMPT_TIMEOUT)
    if returncode != 0:
        return False
    return probe.config.expect is None or re.search(probe.config.expect, stdout) is not None


_PROBES: Dict[ProbeKind, Callable[[ReadinessProbe], bool]] = {
    ProbeKind.RPC_HEIGHT: _probe_rpc_height,
    ProbeKind.TCP: _probe_tcp,
    ProbeKind.LOG_MARKER: _probe_log_marker,
    ProbeKind.FILE_MARKER: _probe_file_marker,
    ProbeKind.COMMAND: _probe_command,
}
