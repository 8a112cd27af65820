"""
Trade record and trade result models.

Trades form an append-only audit trail: one record per execution attempt
that reached the broker, whether it filled or failed.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from swingtrader.core.enums import TradeAction, TradeStatus
from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.types.financial import ZERO
from swingtrader.core.utils.clock import utc_now

if TYPE_CHECKING:
    from swingtrader.core.models.risk import RiskValidation


@dataclass(frozen=True)
class Trade:
    """Immutable record of one execution attempt."""

    symbol: str
    action: TradeAction
    quantity: int
    price: float
    status: TradeStatus
    portfolio_id: str
    fees: float = ZERO
    realized_pnl: float = ZERO
    reasoning: str = ""
    signal_id: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        """Validate trade data after initialization."""
        if self.quantity < 0:
            raise ValidationError(f"Trade quantity must be non-negative, got {self.quantity}")
        if self.price < ZERO:
            raise ValidationError(f"Trade price must be non-negative, got {self.price}")
        if self.fees < ZERO:
            raise ValidationError(f"Trade fees must be non-negative, got {self.fees}")

    @property
    def notional_value(self) -> float:
        return self.quantity * self.price

    @property
    def is_executed(self) -> bool:
        return self.status == TradeStatus.EXECUTED

    @property
    def cash_impact(self) -> float:
        """Signed cash movement of an executed trade, fees included."""
        if not self.is_executed:
            return ZERO
        return self.action.cash_direction * self.notional_value - self.fees


@dataclass(frozen=True)
class TradeResult:
    """Outcome of ExecuteTradeOrder."""

    success: bool
    trade: Trade | None = None
    error: str | None = None
    execution_time_ms: float = ZERO
    validation: "RiskValidation | None" = None

    @classmethod
    def failed(
        cls,
        error: str,
        execution_time_ms: float,
        trade: Trade | None = None,
        validation: "RiskValidation | None" = None,
    ) -> "TradeResult":
        return cls(
            success=False,
            trade=trade,
            error=error,
            execution_time_ms=execution_time_ms,
            validation=validation,
        )
