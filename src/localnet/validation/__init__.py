"""
Validation and error handling for the localnet package.

This module provides input validation and error-reporting helpers
with consistent logging across the application.
"""

from .exceptions import (
    ErrorSeverity,
    ValidationError,
    handle_error,
    handle_config_error,
    handle_file_error,
    handle_cli_error,
)

from .validators import (
    validate_command_template,
    validate_component_name,
    validate_enum_choice,
    validate_port,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
    validate_string_list,
)

__all__ = [
    "ErrorSeverity",
    "ValidationError",
    "handle_error",
    "handle_config_error",
    "handle_file_error",
    "handle_cli_error",
    "validate_command_template",
    "validate_component_name",
    "validate_enum_choice",
    "validate_port",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_regex_pattern",
    "validate_string_list",
]
