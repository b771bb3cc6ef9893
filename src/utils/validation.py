"""Input validation utilities for the store and services.

This module provides reusable validation functions that raise clear
ValueError or TypeError exceptions for invalid inputs, plus the name
key used for case-insensitive character identity.
"""

MAX_NAME_LENGTH = 200


def validate_not_none(value, param_name: str):
    """Validate that a required parameter is not None.

    Raises:
        ValueError: If value is None
    """
    if value is None:
        raise ValueError(f"Parameter '{param_name}' cannot be None")


def validate_not_empty(value: str | None, param_name: str) -> None:
    """Validate that a string parameter is not None or blank.

    Args:
        value: The string value to validate
        param_name: Name of the parameter for error messages

    Raises:
        ValueError: If value is None, empty string, or only whitespace
        TypeError: If value is not a string
    """
    if value is None:
        raise ValueError(f"Parameter '{param_name}' cannot be None")
    if not isinstance(value, str):
        raise TypeError(f"Parameter '{param_name}' must be a string, got {type(value).__name__}")
    if not value.strip():
        raise ValueError(f"Parameter '{param_name}' cannot be empty")


def validate_in_range(
    value: int | float | None,
    param_name: str,
    min_val: int | float | None = None,
    max_val: int | float | None = None,
) -> None:
    """Validate that a numeric parameter is within an inclusive range.

    Args:
        value: The numeric value to validate
        param_name: Name of the parameter for error messages
        min_val: Minimum allowed value, None for no minimum
        max_val: Maximum allowed value, None for no maximum

    Raises:
        ValueError: If value is None or out of range
        TypeError: If value is not int or float
    """
    if value is None:
        raise ValueError(f"Parameter '{param_name}' cannot be None")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Parameter '{param_name}' must be numeric, got {type(value).__name__}")

    if min_val is not None and value < min_val:
        raise ValueError(f"Parameter '{param_name}' must be >= {min_val}, got {value}")
    if max_val is not None and value > max_val:
        raise ValueError(f"Parameter '{param_name}' must be <= {max_val}, got {value}")


def validate_string_in_choices(value: str | None, param_name: str, choices: list[str]) -> None:
    """Ensure the string parameter is one of the allowed choices.

    Raises:
        ValueError: If value is blank or not one of choices.
    """
    validate_not_empty(value, param_name)
    if value not in choices:
        raise ValueError(f"Parameter '{param_name}' must be one of {choices}, got '{value}'")


def validate_character_name(name: str | None) -> str:
    """Validate and clean a character name.

    Args:
        name: Raw name from a registration payload or metadata update.

    Returns:
        The stripped name.

    Raises:
        ValueError: If the name is missing, blank or too long.
        TypeError: If the name is not a string.
    """
    validate_not_empty(name, "name")
    assert name is not None  # Guaranteed by validate_not_empty
    cleaned = name.strip()
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValueError(f"Character name cannot exceed {MAX_NAME_LENGTH} characters")
    return cleaned


def name_key(name: str) -> str:
    """Return the case-insensitive comparison key for a character name."""
    return name.strip().casefold()


def clamp(value: int, low: int, high: int) -> int:
    """Clamp an integer into ``[low, high]``."""
    return max(low, min(high, value))
