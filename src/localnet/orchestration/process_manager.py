"""
Process Supervisor.

Spawns long-running chain and relayer processes, polls their readiness
probes, and tears down whole process trees with escalating signals. The
supervisor is used uniformly for every child; it knows nothing about
topology or ordering.
"""

import logging
import os
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

import psutil

from ..errors import ReadinessTimeout, SpawnFailure, StartAborted, StopWarning
from ..models.runtime import LockRecord, ProcessHandle, ProcessState, ProcessStatus
from ..state.lockfile import remove_file, write_lock
from ..system.commands import command_to_str
from ..system.processes import CREATE_TIME_TOLERANCE, is_pid_alive, is_process_alive, process_create_time
from ..validation import ErrorSeverity, handle_error
from .probes import ReadinessProbe
from .shared_state import RuntimeState, TimeoutConstants

logger = logging.getLogger(__name__)


class ProcessSupervisor:
    """
    Spawn, readiness-poll, inspect and stop external processes.

    Attributes:
        spawn_count: Number of processes launched by this supervisor
    """

    def __init__(self, state: RuntimeState):
        self.state = state
        self.spawn_count = 0
        self._count_lock = threading.Lock()

    def spawn(
        self,
        name: str,
        command: Sequence[str],
        workdir: Path,
        env: Optional[Mapping[str, str]],
        probe: ReadinessProbe,
        timeout: float,
        log_path: Path,
        lock_path: Optional[Path] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessHandle:
        """
        Launch a process and wait until its readiness probe succeeds.

        The process runs in its own session with stdout and stderr appended
        to `log_path`. Any failure after launch stops the process before the
        error propagates, so a failed spawn never leaves a child behind.

        Raises:
            SpawnFailure: If the process cannot be launched or exits early
            ReadinessTimeout: If the probe does not succeed within `timeout`
            StartAborted: If `cancel_event` or a shutdown request fires first
        """
        with self._count_lock:
            self.spawn_count += 1

        full_env = dict(os.environ)
        if env:
            full_env.update(env)

        log_path.parent.mkdir(parents=True, exist_ok=True)
        probe.skip_existing_log()

        logger.info(f"Starting {name}: {command_to_str(command)}")
        with open(log_path, "ab") as log_file:
            log_file.write(f"--- {time.strftime('%Y-%m-%d %H:%M:%S')} starting {name}: {command_to_str(command)}\n".encode())
            log_file.flush()
            try:
                popen = subprocess.Popen(
                    list(command),
                    cwd=workdir,
                    env=full_env,
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
            except OSError as e:
                raise SpawnFailure(name, f"failed to launch '{command[0]}': {e}") from e

        handle = ProcessHandle(
            name=name,
            pid=popen.pid,
            create_time=process_create_time(popen.pid) or time.time(),
            log_path=log_path,
            probe=probe.config,
            command=list(command),
            lock_path=lock_path,
            popen=popen,
        )
        logger.debug(f"{name} started with PID {handle.pid}")

        try:
            if lock_path is not None:
                write_lock(
                    lock_path,
                    LockRecord(
                        pid=handle.pid,
                        create_time=handle.create_time,
                        started_at=time.time(),
                        command=handle.command,
                        log_path=str(log_path),
                    ),
                )
            self._wait_until_ready(handle, probe, timeout, cancel_event)
        except BaseException:
            self._stop_quietly(handle)
            raise

        logger.info(f"{name} is ready (PID {handle.pid}, {probe.attempts} probe attempts)")
        return handle

    def _wait_until_ready(
        self,
        handle: ProcessHandle,
        probe: ReadinessProbe,
        timeout: float,
        cancel_event: Optional[threading.Event],
    ) -> None:
        deadline = time.monotonic() + timeout
        interval = probe.config.interval

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise StartAborted(handle.name, "startup cancelled after a sibling failed")
            if self.state.shutdown_requested.is_set():
                raise StartAborted(handle.name, "shutdown requested")

            exit_code = handle.popen.poll()
            if exit_code is not None:
                raise SpawnFailure(
                    handle.name,
                    f"exited with code {exit_code} before becoming ready (see {handle.log_path})",
                    exit_code=exit_code,
                )

            if probe.check():
                handle.ready = True
                return

            if time.monotonic() >= deadline:
                logger.error(f"{handle.name} did not pass probe {probe.describe()} within {timeout:.1f}s")
                raise ReadinessTimeout(handle.name, timeout)

            if cancel_event is not None:
                cancel_event.wait(interval)
            else:
                self.state.shutdown_requested.wait(interval)

    def attach(self, name: str, record: LockRecord, probe_config, lock_path: Optional[Path] = None) -> ProcessHandle:
        """Build a handle for a live process started by another invocation."""
        return ProcessHandle(
            name=name,
            pid=record.pid,
            create_time=record.create_time,
            log_path=Path(record.log_path),
            probe=probe_config,
            command=list(record.command),
            lock_path=lock_path,
            popen=None,
            ready=True,
        )

    def is_alive(self, handle: ProcessHandle) -> bool:
        if handle.popen is not None:
            return handle.popen.poll() is None
        return is_pid_alive(handle.pid, handle.create_time)

    def status(self, handle: ProcessHandle) -> ProcessStatus:
        """Current status of a handle. Pure read apart from reaping exit codes."""
        if handle.popen is not None:
            exit_code = handle.popen.poll()
            if exit_code is not None:
                if handle.killed or exit_code == -signal.SIGKILL:
                    return ProcessStatus(ProcessState.KILLED, exit_code)
                return ProcessStatus(ProcessState.EXITED, exit_code)
        elif not is_pid_alive(handle.pid, handle.create_time):
            return ProcessStatus(ProcessState.KILLED if handle.killed else ProcessState.EXITED)

        return ProcessStatus(ProcessState.READY if handle.ready else ProcessState.STARTING)

    def stop(self, handle: ProcessHandle, grace_period: float) -> None:
        """
        Stop a process tree: SIGTERM, wait `grace_period`, then SIGKILL.

        Stopping an already-exited process succeeds. The lock file is removed
        once the process is confirmed gone.

        Raises:
            StopWarning: If processes survive SIGKILL or cannot be signalled
        """
        if not self.is_alive(handle):
            logger.debug(f"{handle.name} (PID {handle.pid}) already exited")
            self._reap(handle)
            if handle.lock_path is not None:
                remove_file(handle.lock_path)
            return

        logger.info(f"Stopping {handle.name} (PID {handle.pid})")
        survivors = self.terminate_process_tree(handle, grace_period)
        self._reap(handle)

        if survivors:
            raise StopWarning(handle.name, f"{len(survivors)} process(es) survived SIGKILL: {survivors}")
        if handle.lock_path is not None:
            remove_file(handle.lock_path)

    def _stop_quietly(self, handle: ProcessHandle) -> None:
        try:
            self.stop(handle, grace_period=0.0)
        except Exception as e:
            handle_error(
                error=e,
                context=f"stopping {handle.name} after a failed start",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )

    def _reap(self, handle: ProcessHandle) -> None:
        if handle.popen is None:
            return
        try:
            handle.popen.wait(timeout=TimeoutConstants.REAP_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning(f"{handle.name} (PID {handle.pid}) was not reaped within {TimeoutConstants.REAP_TIMEOUT}s")

    def terminate_process_tree(self, handle: ProcessHandle, grace_period: float) -> List[int]:
        """
        Terminate a process and all of its descendants with escalating force.

        Returns:
            PIDs still alive after the final phase
        """
        name, pid = handle.name, handle.pid
        try:
            parent = psutil.Process(pid)
            if abs(parent.create_time() - handle.create_time) > CREATE_TIME_TOLERANCE:
                logger.warning(f"PID {pid} no longer belongs to {name}; not signalling it")
                return []
        except psutil.NoSuchProcess:
            logger.info(f"Process {name} (PID {pid}) already terminated")
            return []
        except psutil.AccessDenied as e:
            raise StopWarning(name, f"access denied to PID {pid}") from e

        phases = [
            {"name": "graceful", "signal": "SIGTERM", "timeout": grace_period, "force": False},
            {"name": "force_kill", "signal": "SIGKILL", "timeout": TimeoutConstants.TERMINATION_FORCE_TIMEOUT, "force": True},
        ]

        remaining: List[psutil.Process] = []
        for phase in phases:
            if not is_process_alive(parent) and not self._get_process_children(parent):
                break

            all_processes = [parent] + self._get_process_children(parent)
            if phase["force"]:
                handle.killed = True
                logger.warning(f"{name} did not exit within {grace_period:.1f}s; sending SIGKILL")

            signalled = self._apply_termination_signal(all_processes, phase)
            remaining = self._wait_for_termination(signalled, phase["timeout"])
            if not remaining:
                logger.debug(f"All processes of {name} terminated in phase {phase['name']}")
                break

        self._cleanup_process_group(pid, name)
        return [p.pid for p in remaining if is_process_alive(p)]

    def _get_process_children(self, parent: psutil.Process) -> List[psutil.Process]:
        """Safely get all descendants of a process, handling race conditions."""
        try:
            return [child for child in parent.children(recursive=True) if is_process_alive(child)]
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return []

    def _apply_termination_signal(self, processes: List[psutil.Process], phase: dict) -> List[psutil.Process]:
        """Send the phase's signal and return the processes that were signalled."""
        signalled = []
        for process in processes:
            try:
                if not is_process_alive(process):
                    continue
                if phase["force"]:
                    process.kill()
                else:
                    process.terminate()
                signalled.append(process)
                logger.debug(f"Sent {phase['signal']} to PID {process.pid}")
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning(f"Access denied sending {phase['signal']} to PID {process.pid}")
        return signalled

    def _wait_for_termination(self, processes: List[psutil.Process], timeout: float) -> List[psutil.Process]:
        """Wait for processes to terminate and return any that are still alive."""
        if not processes:
            return []
        _, still_alive = psutil.wait_procs(processes, timeout=max(timeout, 0.0))
        # Zombies count as terminated
        return [p for p in still_alive if is_process_alive(p)]

    def _cleanup_process_group(self, pid: int, name: str) -> None:
        """Kill leftovers in the child's session, which may have left the tree."""
        try:
            os.killpg(pid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group {pid} for {name}")
        except ProcessLookupError:
            pass
        except PermissionError:
            logger.debug(f"No permission to kill process group {pid}")
