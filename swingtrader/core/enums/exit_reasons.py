"""
Exit reason enumeration.
"""

from enum import StrEnum


class ExitReason(StrEnum):
    """Why the exit monitor produced a sell signal."""

    STOP_LOSS = "stop_loss"
    PROFIT_TARGET = "profit_target"
    TIME_EXIT = "time_exit"

    def tag(self, target_index: int | None = None) -> str:
        """Reasoning tag, numbering profit targets from 1."""
        if self == self.PROFIT_TARGET and target_index is not None:
            return f"{self.value}_{target_index + 1}"
        return self.value

    @property
    def priority(self) -> int:
        """Execution order across positions within one cycle (lower first)."""
        return {self.STOP_LOSS: 0, self.TIME_EXIT: 1, self.PROFIT_TARGET: 2}[self]
