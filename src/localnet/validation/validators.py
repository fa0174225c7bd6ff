"""
Validation functions for configuration values.

Each validator returns the normalized value or raises ValidationError
naming the offending field.
"""

import re
import shlex
from typing import Any, Iterable, List, Optional, Type, TypeVar

from .exceptions import ValidationError

E = TypeVar("E")

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_\-]*$")

# Directory names the state root uses for itself
RESERVED_NAMES = frozenset({"bin"})


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is an integer within bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated integer value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    if int_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and int_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    return int_value


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """
    Validate that a value is a number within bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated float value

    Raises:
        ValidationError: If validation fails
    """
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    if float_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and float_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    return float_value


def validate_port(value: Any, field_name: str = "port") -> int:
    """Validate a TCP port number."""
    return validate_positive_integer(value, min_value=1, max_value=65535, field_name=field_name)


def validate_component_name(
    name: Any,
    existing_names: Optional[Iterable[str]] = None,
    field_name: str = "name"
) -> str:
    """
    Validate a chain, relayer or contract name.

    Names are used as directory names under the state root, so they are
    restricted to letters, digits, '-' and '_'.

    Args:
        name: Name to validate
        existing_names: Names already taken (for uniqueness check)
        field_name: Name of the field being validated

    Returns:
        The validated name

    Raises:
        ValidationError: If the name is malformed or already used
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=name
        )
    name = name.strip()
    if not _NAME_PATTERN.match(name):
        raise ValidationError(
            f"{field_name} contains invalid characters: {name!r}",
            field_name=field_name,
            value=name
        )
    if name in RESERVED_NAMES:
        raise ValidationError(
            f"{field_name} '{name}' is reserved",
            field_name=field_name,
            value=name
        )
    if existing_names is not None and name in set(existing_names):
        raise ValidationError(
            f"{field_name} '{name}' is defined more than once",
            field_name=field_name,
            value=name
        )
    return name


def validate_enum_choice(value: Any, enum_type: Type[E], field_name: str = "value") -> E:
    """
    Validate that a string names a member of an Enum (by value).

    Raises:
        ValidationError: If the value is not one of the enum's values
    """
    valid_choices = [member.value for member in enum_type]
    if isinstance(value, str):
        value = value.strip().lower()
    try:
        return enum_type(value)
    except ValueError:
        raise ValidationError(
            f"{field_name} must be one of {valid_choices}, got {value!r}",
            field_name=field_name,
            value=value
        )


def validate_command_template(template: Any, field_name: str = "command") -> str:
    """
    Validate a command template string.

    The template must be non-empty and split cleanly into shell words.

    Raises:
        ValidationError: If the template is empty or has unbalanced quotes
    """
    if not isinstance(template, str) or not template.strip():
        raise ValidationError(
            f"{field_name} must be a non-empty command string",
            field_name=field_name,
            value=template
        )
    try:
        shlex.split(template)
    except ValueError as e:
        raise ValidationError(
            f"{field_name} is not a valid command line: {e}",
            field_name=field_name,
            value=template
        )
    return template.strip()


def validate_string_list(value: Any, field_name: str = "value") -> List[str]:
    """Validate a list of strings; a single string becomes a one-item list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValidationError(
            f"{field_name} must be a list of strings",
            field_name=field_name,
            value=value
        )
    return list(value)


def validate_regex_pattern(pattern: Any, field_name: str = "pattern") -> str:
    """Validate that a string compiles as a regular expression."""
    if not isinstance(pattern, str) or not pattern:
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=pattern
        )
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValidationError(
            f"{field_name} is not a valid regex: {e}",
            field_name=field_name,
            value=pattern
        )
    return pattern

