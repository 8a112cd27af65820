"""
Financial helpers for share sizing and portfolio arithmetic.

Prices and cash are plain floats. Share quantities are whole numbers and
are always rounded down, so every sizing cap is conservative. Values are
not rounded inside the engine; rounding helpers exist for presentation.
"""

import math

from swingtrader.core.constants import VALUE_TOLERANCE

PERCENTAGE_DECIMALS = 4  # 4 decimal places for percentages
PRICE_DECIMALS = 2  # 2 decimal places for USD prices

# Common financial values as float constants
ZERO = 0.0
ONE = 1.0
HUNDRED = 100.0


def to_float(value: str | int | float) -> float:
    """Convert various numeric types to float.

    Examples:
        >>> to_float(150)
        150.0
        >>> to_float('1.5')
        1.5
    """
    if isinstance(value, float):
        return value
    return float(value)


def round_price(price: float) -> float:
    """Round price to cents for display."""
    return round(price, PRICE_DECIMALS)


def round_percentage(percentage: float) -> float:
    """Round percentage to appropriate precision."""
    return round(percentage, PERCENTAGE_DECIMALS)


def floor_shares(value: float) -> int:
    """Round a share count down to a whole number, never below zero.

    Args:
        value: Fractional share count

    Returns:
        Whole share count
    """
    if value <= ZERO or math.isnan(value):
        return 0
    if math.isinf(value):
        raise ValueError("Share count must be finite")
    return max(0, math.floor(value))


def shares_for_budget(budget: float, price: float) -> int:
    """Whole shares purchasable with a budget at a price.

    Args:
        budget: Cash or value available
        price: Price per share

    Returns:
        Whole share count (0 for non-positive budget or price)
    """
    if price <= ZERO or budget <= ZERO:
        return 0
    return floor_shares(budget / price)


def percentage_of(part: float, whole: float) -> float:
    """Express part as a percentage of whole, 0 when whole is not positive."""
    if whole <= ZERO:
        return ZERO
    return part / whole * HUNDRED


def fraction_of(percentage: float, whole: float) -> float:
    """Apply a percentage (percent units) to a value."""
    return whole * percentage / HUNDRED


def calculate_pnl(entry_price: float, exit_price: float, quantity: float) -> float:
    """Calculate long PnL before fees.

    Args:
        entry_price: Average entry price
        exit_price: Exit or mark price
        quantity: Share count

    Returns:
        PnL as float
    """
    return (exit_price - entry_price) * abs(quantity)


def weighted_average_price(
    quantity_a: float, price_a: float, quantity_b: float, price_b: float
) -> float:
    """Quantity-weighted average of two lots."""
    total = quantity_a + quantity_b
    if total <= ZERO:
        raise ValueError(f"Total quantity must be positive, got {total}")
    return (quantity_a * price_a + quantity_b * price_b) / total


def safe_float_comparison(a: float, b: float, tolerance: float = VALUE_TOLERANCE) -> bool:
    """Compare floats with tolerance for precision issues.

    Examples:
        >>> safe_float_comparison(0.1 + 0.2, 0.3)
        True
        >>> safe_float_comparison(1000000.1, 1000000.2, 0.01)
        False
    """
    return abs(a - b) < tolerance
