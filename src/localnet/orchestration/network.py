"""
Network Topology Controller.

Owns the NetworkInstance state machine and sequences its children: every
chain is spawned in parallel and joined at a barrier, then every relayer the
same way. Any failure cancels the in-flight siblings, rolls back what already
started and leaves the instance in FAILED.
"""

import contextlib
import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterator, List, Optional, Tuple

from ..errors import (
    Interrupted,
    InvalidTransition,
    LocalnetError,
    PartialStartFailure,
    ResourceBusy,
    SpawnFailure,
    StartAborted,
    StopWarning,
)
from ..models.config import AppConfig
from ..models.runtime import (
    NetworkRecord,
    NetworkState,
    NetworkStatus,
    ProcessHandle,
    ProcessState,
    StartResult,
    StopReport,
)
from ..state.layout import StateLayout
from ..state.lockfile import (
    lock_is_live,
    read_lock,
    read_network_record,
    remove_file,
    write_network_record,
)
from ..system.processes import is_pid_alive
from ..validation import ErrorSeverity, handle_error
from .launch import ComponentSpec, LaunchPlan, LaunchPlanner
from .process_manager import ProcessSupervisor
from .shared_state import RuntimeState, TimeoutConstants

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    # DOWN -> UP happens when attaching to a running instance
    NetworkState.DOWN: {NetworkState.STARTING, NetworkState.UP},
    NetworkState.STARTING: {NetworkState.UP, NetworkState.FAILED},
    NetworkState.UP: {NetworkState.STOPPING},
    NetworkState.STOPPING: {NetworkState.DOWN, NetworkState.FAILED},
    NetworkState.FAILED: {NetworkState.STOPPING},
}


class NetworkController:
    """
    Start, stop and inspect the local network.

    Args:
        config: Validated application configuration
        supervisor: Process supervisor; a new one sharing this controller's
            RuntimeState is created when omitted
        planner: Launch planner
    """

    def __init__(
        self,
        config: AppConfig,
        supervisor: Optional[ProcessSupervisor] = None,
        planner: Optional[LaunchPlanner] = None,
    ):
        self.config = config
        self.layout = StateLayout(config.general.state_root)
        self.state = supervisor.state if supervisor is not None else RuntimeState()
        self.supervisor = supervisor or ProcessSupervisor(self.state)
        self.planner = planner or LaunchPlanner(config, self.layout)

        self.network_state = NetworkState.DOWN
        self.handles: Dict[str, ProcessHandle] = {}
        self.attached = False
        self.failure: Optional[Exception] = None
        # Handles of children that were stopped; kept so status() can report them
        self._retired: Dict[str, ProcessHandle] = {}
        self._lock = threading.RLock()

    # --- state machine ---

    def _transition(self, target: NetworkState) -> None:
        with self._lock:
            if target not in _TRANSITIONS[self.network_state]:
                raise InvalidTransition(
                    f"cannot move network from {self.network_state.value} to {target.value}"
                )
            logger.debug(f"Network state {self.network_state.value} -> {target.value}")
            self.network_state = target

    def _write_record(self, state: NetworkState) -> None:
        write_network_record(
            self.layout.network_file,
            NetworkRecord(
                state=state,
                components=self.config.component_names,
                owner_pid=os.getpid(),
                updated_at=time.time(),
            ),
        )

    def _stop_order(self) -> List[str]:
        """Relayers in reverse order, then chains in reverse order."""
        relayers = [r.name for r in self.config.relayers]
        chains = [c.name for c in self.config.chains]
        return list(reversed(relayers)) + list(reversed(chains))

    # --- detection ---

    def detect_existing(self) -> Optional[Dict[str, ProcessHandle]]:
        """
        Look for an instance started by another invocation.

        Returns:
            Attachable handles when every component is live, None when none is
            (stale lock files and the network record are removed)

        Raises:
            ResourceBusy: If only some components are live, or another
                orchestrator is still starting or stopping the network
        """
        records = {name: read_lock(self.layout.lock_file(name)) for name in self.config.component_names}
        live = [name for name, record in records.items() if lock_is_live(record)]

        network = read_network_record(self.layout.network_file)
        if (
            network is not None
            and network.owner_pid != os.getpid()
            and network.state in (NetworkState.STARTING, NetworkState.STOPPING)
            and is_pid_alive(network.owner_pid)
        ):
            raise ResourceBusy(
                f"another orchestrator (pid {network.owner_pid}) is {network.state.value} the network",
                live=live,
            )

        if live and len(live) == len(records):
            handles = {}
            for name, record in records.items():
                spec = self._spec(name)
                handles[name] = self.supervisor.attach(
                    name, record, spec.readiness, lock_path=self.layout.lock_file(name)
                )
            return handles

        if live:
            missing = [name for name in records if name not in live]
            raise ResourceBusy(
                f"local network is partially running (live: {', '.join(live)}; "
                f"down: {', '.join(missing)}); run stop or kill the leftovers",
                live=live,
            )

        for name, record in records.items():
            if record is not None:
                logger.info(f"Removing stale lock for {name} (PID {record.pid} is gone)")
                remove_file(self.layout.lock_file(name))
        if network is not None:
            remove_file(self.layout.network_file)
        return None

    def attach(self) -> bool:
        """Adopt a running instance if there is one. Returns True when attached."""
        with self._lock:
            if self.network_state != NetworkState.DOWN:
                raise InvalidTransition(f"cannot attach while {self.network_state.value}")
            existing = self.detect_existing()
            if existing is None:
                return False
            self.handles = existing
            self.attached = True
            self.failure = None
            self._transition(NetworkState.UP)
        logger.info(f"Attached to running network ({', '.join(existing)})")
        return True

    def _spec(self, name: str) -> ComponentSpec:
        for spec in list(self.config.chains) + list(self.config.relayers):
            if spec.name == name:
                return spec
        raise KeyError(name)

    # --- start ---

    def start(self) -> StartResult:
        """
        Bring the network up, or attach to one that is already running.

        Raises:
            PartialStartFailure: If any child failed; the network is FAILED
                and every child that had started has been stopped
            Interrupted: If a shutdown was requested during startup
            ResourceBusy: If a partial or foreign-owned instance is present
            InvalidTransition: If called while starting, stopping or FAILED
        """
        with self._lock:
            if self.network_state == NetworkState.UP:
                return StartResult(attached=self.attached, components=list(self.handles))
            if self.network_state != NetworkState.DOWN:
                raise InvalidTransition(f"cannot start network while {self.network_state.value}")
            if self.attach():
                return StartResult(attached=True, components=list(self.handles))
            self._transition(NetworkState.STARTING)
            self.failure = None
            self._retired = {}

        started_at = time.monotonic()
        try:
            self._write_record(NetworkState.STARTING)
            cancel = threading.Event()
            chain_plans = self._prepare(self.config.chains, [])
            succeeded = self._run_barrier("chains", chain_plans, cancel, [])
            if self.state.shutdown_requested.is_set():
                raise Interrupted("shutdown requested before relayers were started")

            # Relayer setup talks to the chains, so it runs after their barrier
            relayer_plans = self._prepare(self.config.relayers, succeeded)
            self._run_barrier("relayers", relayer_plans, cancel, succeeded)

            self._transition(NetworkState.UP)
            self._write_record(NetworkState.UP)
        except BaseException as e:
            self._rollback(e)
            raise

        logger.info(f"Network is up ({len(self.handles)} components, {time.monotonic() - started_at:.1f}s)")
        return StartResult(attached=False, components=list(self.handles))

    def _prepare(self, specs, succeeded: List[str]) -> Dict[str, LaunchPlan]:
        """Build launch plans sequentially; a failure here fails the start before the tier spawns."""
        plans: Dict[str, LaunchPlan] = {}
        for spec in specs:
            try:
                plans[spec.name] = self.planner.prepare(spec)
            except LocalnetError as e:
                raise PartialStartFailure(succeeded=succeeded, failed={spec.name: e}) from e
            except (KeyError, ValueError, OSError) as e:
                failure = SpawnFailure(spec.name, f"could not prepare launch: {type(e).__name__}: {e}")
                raise PartialStartFailure(succeeded=succeeded, failed={spec.name: failure}) from e
        return plans

    def _spawn(self, plan: LaunchPlan, cancel: threading.Event) -> ProcessHandle:
        return self.supervisor.spawn(
            plan.name,
            plan.command,
            plan.workdir,
            plan.env,
            plan.probe,
            plan.timeout,
            plan.log_path,
            lock_path=plan.lock_path,
            cancel_event=cancel,
        )

    def _run_barrier(
        self,
        tier: str,
        plans: Dict[str, LaunchPlan],
        cancel: threading.Event,
        succeeded: List[str],
    ) -> List[str]:
        """
        Spawn every plan in parallel and wait for all of them to settle.

        The first failure sets `cancel` so siblings abort at their next probe
        attempt; the barrier still joins every worker before returning.
        """
        if not plans:
            return succeeded

        failed: Dict[str, Exception] = {}
        aborted: List[str] = []
        logger.info(f"Starting {tier}: {', '.join(plans)}")

        with ThreadPoolExecutor(max_workers=len(plans), thread_name_prefix=f"start-{tier}") as pool:
            futures = {pool.submit(self._spawn, plan, cancel): name for name, plan in plans.items()}
            try:
                for future in as_completed(futures):
                    name = futures[future]
                    try:
                        handle = future.result()
                    except StartAborted as e:
                        logger.info(f"{name} start aborted: {e.reason}")
                        aborted.append(name)
                    except Exception as e:
                        logger.error(f"{name} failed to start: {e}")
                        failed[name] = e
                        cancel.set()
                    else:
                        with self._lock:
                            self.handles[name] = handle
                        succeeded.append(name)
            except BaseException:
                cancel.set()
                raise

        if failed:
            raise PartialStartFailure(succeeded, failed, aborted)
        if aborted:
            raise Interrupted(f"startup of {tier} interrupted ({', '.join(aborted)} aborted)")
        return succeeded

    def _rollback(self, error: BaseException) -> None:
        """Stop whatever started, drop on-disk records and enter FAILED."""
        logger.error(f"Network start failed, rolling back: {error}")
        with self._lock:
            self.failure = error if isinstance(error, Exception) else Interrupted(str(error) or type(error).__name__)
            for name in self._stop_order():
                handle = self.handles.pop(name, None)
                if handle is None:
                    continue
                try:
                    self.supervisor.stop(handle, self.config.timeouts.stop_grace_period)
                except Exception as e:
                    handle_error(
                        error=e,
                        context=f"stopping {name} during rollback",
                        severity=ErrorSeverity.WARNING,
                        reraise=False,
                        logger=logger,
                    )
                self._retired[name] = handle

            for name in self.config.component_names:
                lock_path = self.layout.lock_file(name)
                if not lock_is_live(read_lock(lock_path)):
                    remove_file(lock_path)
            remove_file(self.layout.network_file)
            self._transition(NetworkState.FAILED)

    # --- stop ---

    def stop(self) -> StopReport:
        """
        Stop relayers then chains. Always ends in DOWN; individual stop
        problems are returned as warnings.
        """
        with self._lock:
            if self.network_state == NetworkState.DOWN:
                logger.debug("Network already down")
                return StopReport()
            if self.network_state not in (NetworkState.UP, NetworkState.FAILED):
                raise InvalidTransition(f"cannot stop network while {self.network_state.value}")
            self._transition(NetworkState.STOPPING)

            report = StopReport()
            try:
                if self.handles:
                    self._write_record(NetworkState.STOPPING)
                for name in self._stop_order():
                    handle = self.handles.pop(name, None)
                    if handle is None:
                        continue
                    try:
                        self.supervisor.stop(handle, self.config.timeouts.stop_grace_period)
                        report.stopped.append(name)
                    except StopWarning as w:
                        logger.warning(f"{w}")
                        report.warnings.append(w)
                    except Exception as e:
                        warning = StopWarning(name, f"{type(e).__name__}: {e}")
                        logger.warning(f"{warning}")
                        report.warnings.append(warning)
                    self._retired[name] = handle
                remove_file(self.layout.network_file)
            except BaseException as e:
                self.failure = e if isinstance(e, Exception) else Interrupted("stop interrupted")
                self._transition(NetworkState.FAILED)
                raise

            self.attached = False
            self._transition(NetworkState.DOWN)

        if report.clean:
            logger.info(f"Network stopped ({len(report.stopped)} components)")
        else:
            logger.warning(f"Network stopped with {len(report.warnings)} warning(s)")
        return report

    # --- inspection ---

    def status(self) -> NetworkStatus:
        """Current state and per-child status. No side effects."""
        with self._lock:
            children = {}
            for name in self.config.component_names:
                handle = self.handles.get(name) or self._retired.get(name)
                if handle is not None:
                    children[name] = self.supervisor.status(handle)
            return NetworkStatus(
                state=self.network_state,
                children=children,
                attached=self.attached,
                failure=self.failure,
            )

    def exited_children(self) -> List[Tuple[str, str]]:
        """Live-handle children that are no longer running, with their status."""
        exited = []
        for name, status in self.status().children.items():
            if name in self.handles and status.state in (ProcessState.EXITED, ProcessState.KILLED):
                exited.append((name, str(status)))
        return exited

    # --- higher-level helpers ---

    @contextlib.contextmanager
    def managed(self) -> Iterator[StartResult]:
        """
        Start the network for the duration of a block.

        The network is stopped on exit only when this call started it; an
        attached network is left running for its owner.
        """
        result = self.start()
        try:
            yield result
        finally:
            if not result.attached:
                report = self.stop()
                for warning in report.warnings:
                    logger.warning(f"Stop warning: {warning}")

    def wait_until_interrupted(self, poll_interval: float = TimeoutConstants.FOREGROUND_POLL_INTERVAL) -> Optional[str]:
        """
        Block until a shutdown is requested or a child exits.

        Returns:
            The name of the first child found not running, or None when a
            shutdown signal ended the wait
        """
        while not self.state.shutdown_requested.wait(poll_interval):
            exited = self.exited_children()
            if exited:
                name, status = exited[0]
                logger.error(f"{name} is no longer running ({status}); see {self.layout.log_file(name)}")
                return name
        logger.info("Shutdown requested")
        return None
