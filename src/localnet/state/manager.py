"""
State Directory Manager.

Owns the per-component state directories and the clean/reset operations.
Cleaning never stops processes: a live record anywhere under the state root
makes the whole operation fail with ResourceBusy before anything is removed.
"""

import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import CleanupError, ResourceBusy
from ..models.config import AppConfig
from ..models.runtime import NetworkState
from ..system.processes import is_pid_alive
from ..validation import ErrorSeverity, handle_file_error
from .layout import StateLayout
from .lockfile import lock_is_live, read_lock, read_network_record

logger = logging.getLogger(__name__)


class CleanScope(Enum):
    # Per-chain/relayer runtime state only
    STATE_ONLY = "state"
    # Runtime state plus built artifacts and fetched binaries
    STATE_AND_ARTIFACTS = "all"


class StateDirectoryManager:
    """
    Creates, inspects and removes the devnet's on-disk state.
    """

    def __init__(self, config: AppConfig, layout: Optional[StateLayout] = None):
        self.config = config
        self.layout = layout or StateLayout(config.general.state_root)

    def live_components(self) -> List[str]:
        """Names of configured components whose lock points at a live process."""
        live = []
        for name in self.config.component_names:
            if lock_is_live(read_lock(self.layout.lock_file(name))):
                live.append(name)
        return live

    def check_not_busy(self) -> None:
        """
        Raise ResourceBusy if any process may still be using the state root.

        An orchestrator that is mid-start may not have written every lock yet,
        so a live owner of a `starting` network record also counts as busy.
        """
        live = self.live_components()
        record = read_network_record(self.layout.network_file)
        if (
            record is not None
            and record.state in (NetworkState.STARTING, NetworkState.STOPPING)
            and is_pid_alive(record.owner_pid)
        ):
            live.append(f"orchestrator(pid={record.owner_pid})")
        if live:
            raise ResourceBusy(
                f"local network is running ({', '.join(live)}); stop it before cleaning",
                live=live,
            )

    def _targets(self, scope: CleanScope) -> List[Path]:
        targets = [self.layout.component_dir(name) for name in self.config.component_names]
        targets.append(self.layout.network_file)
        if scope == CleanScope.STATE_AND_ARTIFACTS:
            targets.append(self.config.artifacts.output_dir)
            targets.append(self.layout.bin_dir)
        return targets

    def clean(self, scope: CleanScope) -> List[Path]:
        """
        Remove state for `scope`.

        Every target is attempted even if an earlier one fails; failures are
        reported together afterwards.

        Returns:
            The paths that existed and were removed

        Raises:
            ResourceBusy: If a live instance uses the state root (nothing removed)
            CleanupError: If some paths could not be removed
        """
        self.check_not_busy()

        removed: List[Path] = []
        failures: Dict[str, Exception] = {}
        for target in self._targets(scope):
            if not target.exists() and not target.is_symlink():
                logger.debug(f"Nothing to remove at {target}")
                continue
            try:
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                else:
                    target.unlink()
                removed.append(target)
                logger.info(f"Removed {target}")
            except OSError as e:
                handle_file_error(
                    error=e,
                    context=f"removing {target}",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger,
                )
                failures[str(target)] = e

        state_root = self.config.general.state_root
        if state_root.is_dir() and not any(state_root.iterdir()):
            state_root.rmdir()

        if failures:
            raise CleanupError(failures)
        if not removed:
            logger.info("State already clean")
        return removed
