"""
Core type definitions and utilities.
"""

# Re-export financial utilities for easy access
from .financial import (
    HUNDRED,
    ONE,
    PERCENTAGE_DECIMALS,
    PRICE_DECIMALS,
    ZERO,
    calculate_pnl,
    floor_shares,
    fraction_of,
    percentage_of,
    round_percentage,
    round_price,
    safe_float_comparison,
    shares_for_budget,
    to_float,
    weighted_average_price,
)
from .result import Result

__all__ = [
    # Utility functions
    "to_float",
    "round_price",
    "round_percentage",
    "floor_shares",
    "shares_for_budget",
    "percentage_of",
    "fraction_of",
    "calculate_pnl",
    "weighted_average_price",
    "safe_float_comparison",
    # Result value
    "Result",
    # Constants
    "PERCENTAGE_DECIMALS",
    "PRICE_DECIMALS",
    "ZERO",
    "ONE",
    "HUNDRED",
]
