"""
Trading cycle and engine phase enumerations.

This module defines the strictly ordered phases of a single trading
cycle and the coarse phases reported by the long-running engine.
"""

from enum import StrEnum


class CyclePhase(StrEnum):
    """
    Phases of one trading cycle.

    Non-terminal phases run in declaration order; COMPLETED and FAILED
    are terminal.
    """

    STARTING = "STARTING"
    BUY_SIGNALS = "BUY_SIGNALS"
    SELL_SIGNALS = "SELL_SIGNALS"
    EXIT_CRITERIA = "EXIT_CRITERIA"
    PORTFOLIO_UPDATE = "PORTFOLIO_UPDATE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """Check if the phase ends the cycle."""
        return self in (self.COMPLETED, self.FAILED)

    @property
    def order(self) -> int:
        """Position of the phase in the pipeline (terminal phases last)."""
        return list(CyclePhase).index(self)

    @classmethod
    def pipeline(cls) -> tuple["CyclePhase", ...]:
        """Get the non-terminal phases in execution order."""
        return tuple(phase for phase in cls if not phase.is_terminal)


class EnginePhase(StrEnum):
    """Coarse state of the long-running trading engine."""

    IDLE = "IDLE"
    INITIALIZING = "INITIALIZING"
    TRADING_CYCLE = "TRADING_CYCLE"
    PRICE_UPDATE = "PRICE_UPDATE"
    ERROR = "ERROR"
