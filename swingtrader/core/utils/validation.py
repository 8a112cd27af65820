"""
Validation utilities for core domain models.

Provides consistent validation across the application.
"""

import math

from swingtrader.core.exceptions.engine import ValidationError


def validate_symbol(symbol: object, param_name: str = "symbol") -> str:
    """Validate and normalize a ticker symbol.

    Args:
        symbol: Value to validate
        param_name: Parameter name for error messages

    Returns:
        The stripped, upper-cased symbol

    Raises:
        ValidationError: If symbol is not a non-empty string
    """
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValidationError(f"{param_name} is required")
    return symbol.strip().upper()


def validate_positive(value: float, param_name: str) -> float:
    """Validate that a numeric value is positive and finite.

    Args:
        value: Value to validate
        param_name: Parameter name for error messages

    Returns:
        The validated value

    Raises:
        ValidationError: If value is not positive
    """
    if value is None or math.isnan(value) or value <= 0:
        raise ValidationError(f"{param_name} must be positive, got {value}")
    return value


def validate_non_negative(value: float, param_name: str) -> float:
    """Validate that a numeric value is zero or positive."""
    if value is None or math.isnan(value) or value < 0:
        raise ValidationError(f"{param_name} must be non-negative, got {value}")
    return value


def validate_percentage(value: float, param_name: str = "percentage") -> float:
    """Validate that a value is a valid percentage (0-100).

    Args:
        value: Value to validate
        param_name: Parameter name for error messages

    Returns:
        The validated percentage

    Raises:
        ValidationError: If value is not between 0 and 100
    """
    if value is None or math.isnan(value) or not (0 <= value <= 100):
        raise ValidationError(f"{param_name} must be between 0 and 100, got {value}")
    return value


def validate_probability(value: float, param_name: str = "probability") -> float:
    """Validate that a value lies in [0, 1]."""
    if value is None or math.isnan(value) or not (0 <= value <= 1):
        raise ValidationError(f"{param_name} must be between 0 and 1, got {value}")
    return value
