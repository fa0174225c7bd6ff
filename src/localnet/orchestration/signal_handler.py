"""
Signal handling for the orchestration module.

This module manages signal registration, cleanup, and delegation to active
NetworkController instances using a global registry pattern.
"""

import contextlib
import logging
import signal
import threading
from typing import TYPE_CHECKING, Any, Dict, Iterator

from .shared_state import RuntimeState

if TYPE_CHECKING:
    from .network import NetworkController

logger = logging.getLogger(__name__)

# Signal handlers cannot be bound to instances, so active controllers are
# kept in a registry the module-level handler walks.
_active_controllers: Dict[int, "NetworkController"] = {}
_active_controllers_lock = threading.Lock()


class SignalHandler:
    """
    Routes SIGINT/SIGTERM to the shutdown event of registered controllers.

    Children run in their own session, so a terminal Ctrl-C reaches only the
    orchestrator; the controllers then tear the children down in order.
    """

    def __init__(self, state: RuntimeState):
        self.state = state
        self._original_sigint_handler = None
        self._original_sigterm_handler = None
        self._signal_handlers_set = False

    def setup_signal_handlers(self) -> None:
        try:
            self._original_sigint_handler = signal.signal(signal.SIGINT, self._global_signal_handler)
            self._original_sigterm_handler = signal.signal(signal.SIGTERM, self._global_signal_handler)
            self._signal_handlers_set = True
            logger.debug("Signal handlers installed")
        except ValueError as e:
            # Only the main thread may install handlers
            logger.warning(f"Failed to set up signal handlers: {e}")

    def cleanup_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if not self._signal_handlers_set:
            return
        try:
            if self._original_sigint_handler is not None:
                signal.signal(signal.SIGINT, self._original_sigint_handler)
            if self._original_sigterm_handler is not None:
                signal.signal(signal.SIGTERM, self._original_sigterm_handler)
            logger.debug("Signal handlers restored")
        except ValueError as e:
            logger.warning(f"Failed to restore signal handlers: {e}")
        finally:
            self._signal_handlers_set = False

    def register_controller(self, controller_id: int, controller: "NetworkController") -> None:
        with _active_controllers_lock:
            _active_controllers[controller_id] = controller
            logger.debug(f"Registered controller {controller_id} for signal handling")

    def unregister_controller(self, controller_id: int) -> None:
        with _active_controllers_lock:
            if _active_controllers.pop(controller_id, None) is not None:
                logger.debug(f"Unregistered controller {controller_id} from signal handling")

    @staticmethod
    def _global_signal_handler(signum: int, frame: Any) -> None:
        """Set the shutdown event of every registered controller."""
        logger.warning(f"Signal {signal.Signals(signum).name} received, shutting down")
        with _active_controllers_lock:
            for controller_id, controller in _active_controllers.items():
                if controller.state.shutdown_requested.is_set():
                    logger.warning("Shutdown already in progress. Please be patient.")
                    continue
                logger.info(f"Requesting shutdown for controller {controller_id}")
                controller.state.shutdown_requested.set()


@contextlib.contextmanager
def handle_signals(controller: "NetworkController") -> Iterator[SignalHandler]:
    """Install the handlers and register `controller` for the block's duration."""
    handler = SignalHandler(controller.state)
    handler.setup_signal_handlers()
    handler.register_controller(id(controller), controller)
    try:
        yield handler
    finally:
        handler.unregister_controller(id(controller))
        handler.cleanup_signal_handlers()
