"""
Error taxonomy for devnet orchestration.

Child-process failures are always converted into one of these types before
they leave the Topology Controller, so callers only ever need to handle
LocalnetError subclasses.
"""

from typing import Dict, List, Optional, Sequence


class LocalnetError(Exception):
    """Base class for all orchestration errors."""


class BuildFailure(LocalnetError):
    """The compiler or optimizer exited non-zero for a contract target."""

    def __init__(self, target: str, returncode: int, stderr: str = "", step: str = "build"):
        tail = stderr.strip().splitlines()[-10:]
        detail = "\n".join(tail)
        message = f"{step} of '{target}' failed with exit code {returncode}"
        if detail:
            message = f"{message}:\n{detail}"
        super().__init__(message)
        self.target = target
        self.returncode = returncode
        self.stderr = stderr
        self.step = step


class SpawnFailure(LocalnetError):
    """A child process could not be launched or exited before becoming ready."""

    def __init__(self, name: str, reason: str, exit_code: Optional[int] = None):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason
        self.exit_code = exit_code


class ReadinessTimeout(LocalnetError):
    """A child process launched but its readiness probe never succeeded."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"{name}: not ready after {timeout:.1f}s")
        self.name = name
        self.timeout = timeout


class StartAborted(LocalnetError):
    """A child was stopped before becoming ready because startup was cancelled."""

    def __init__(self, name: str, reason: str = "startup cancelled"):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class ResourceBusy(LocalnetError):
    """A live instance owns the state directories the operation targets."""

    def __init__(self, message: str, live: Sequence[str] = ()):
        super().__init__(message)
        self.live = list(live)


class PartialStartFailure(LocalnetError):
    """
    Aggregate start failure reported after rollback.

    Attributes:
        succeeded: Components that became ready before the failure
        failed: Component name to the error that failed it
        aborted: Components cancelled because a sibling failed
        cause: The first failure observed
    """

    def __init__(
        self,
        succeeded: List[str],
        failed: Dict[str, Exception],
        aborted: Optional[List[str]] = None,
        cause: Optional[Exception] = None,
    ):
        self.succeeded = list(succeeded)
        self.failed = dict(failed)
        self.aborted = list(aborted or [])
        self.cause = cause or next(iter(self.failed.values()), None)
        failed_desc = ", ".join(sorted(self.failed)) or "none"
        super().__init__(
            f"network start failed (failed: {failed_desc}; "
            f"succeeded: {', '.join(self.succeeded) or 'none'}; "
            f"aborted: {', '.join(self.aborted) or 'none'}): {self.cause}"
        )


class StopWarning(LocalnetError):
    """A child did not stop cleanly during teardown. Non-fatal."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class CleanupError(LocalnetError):
    """One or more state paths could not be removed."""

    def __init__(self, failures: Dict[str, Exception]):
        self.failures = dict(failures)
        details = "; ".join(f"{path}: {err}" for path, err in self.failures.items())
        super().__init__(f"failed to remove {len(self.failures)} path(s): {details}")


class InvalidTransition(LocalnetError):
    """A lifecycle operation was requested from a state that does not allow it."""


class Interrupted(LocalnetError):
    """An operator signal interrupted a running operation."""


class DeploymentFailure(LocalnetError):
    """The external deployment step exited non-zero."""

    def __init__(self, returncode: int, command: str):
        super().__init__(f"deployment command '{command}' exited with code {returncode}")
        self.returncode = returncode
        self.command = command


class TestFailure(LocalnetError):
    """The external test command exited non-zero."""

    __test__ = False

    def __init__(self, returncode: int, command: str):
        super().__init__(f"test command '{command}' exited with code {returncode}")
        self.returncode = returncode
        self.command = command
