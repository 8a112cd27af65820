"""
Trade action and status enumerations.

This module defines the allowed trade actions and the lifecycle
states of a recorded trade.
"""

from enum import StrEnum


class TradeAction(StrEnum):
    """
    Allowed trade actions.

    The engine trades long only: BUY opens or adds, SELL reduces or closes.
    """

    BUY = "BUY"
    SELL = "SELL"

    @property
    def is_buy(self) -> bool:
        """Check if action is a buy."""
        return self == self.BUY

    @property
    def is_sell(self) -> bool:
        """Check if action is a sell."""
        return self == self.SELL

    @property
    def cash_direction(self) -> int:
        """Sign applied to notional value when moving cash."""
        return -1 if self.is_buy else 1

    @classmethod
    def parse(cls, value: object) -> "TradeAction | None":
        """Parse an action, returning None for anything that is not BUY or SELL."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class TradeStatus(StrEnum):
    """Lifecycle status of a recorded trade."""

    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"

    @property
    def is_final(self) -> bool:
        """Check if the status can no longer change."""
        return self != self.PENDING
