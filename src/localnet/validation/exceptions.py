"""
Validation error type and error-reporting helpers.

Orchestration code that decides to log-and-continue (rollback, teardown,
best-effort cleanup) routes the error through handle_error so every such
decision is logged with its context in the same format.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional

_logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling, mapped onto logging levels."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class ValidationError(Exception):
    """
    Raised when configuration or command-line input is invalid.

    Attributes:
        field_name: Dotted path of the offending config key, if known
        value: The rejected value
    """

    def __init__(self, message: str, field_name: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field_name = field_name
        self.value = value


def handle_error(
    error: Exception,
    context: str,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log `error` with its context, then re-raise it unless `reraise` is False.

    Tracebacks are attached at DEBUG and CRITICAL only; the other levels
    log a single line.
    """
    target = logger or _logger
    exc_info = severity in (ErrorSeverity.DEBUG, ErrorSeverity.CRITICAL)
    target.log(severity.value, f"Error in {context}: {type(error).__name__}: {error}", exc_info=exc_info)

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Handle an error raised while loading or validating configuration."""
    handle_error(error, f"config {context}", **kwargs)


def handle_file_error(error: Exception, context: str, **kwargs) -> None:
    """Handle an error raised while reading or removing state files."""
    handle_error(error, f"file {context}", **kwargs)


def handle_cli_error(error: Exception, context: str, exit_code: int = 1, logger: Optional[logging.Logger] = None) -> None:
    """Log a command failure and exit the interpreter with `exit_code`."""
    handle_error(error, f"CLI {context}", severity=ErrorSeverity.ERROR, reraise=False, logger=logger)
    sys.exit(exit_code)
