"""
Broker order and execution models.
"""

from dataclasses import dataclass

from swingtrader.core.enums import TradeAction
from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.types.financial import ZERO


@dataclass(frozen=True)
class BrokerOrder:
    """A sized market order at a reference price."""

    symbol: str
    action: TradeAction
    quantity: int
    price: float

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValidationError("Order symbol is required")
        if self.quantity <= 0:
            raise ValidationError(f"Order quantity must be positive, got {self.quantity}")
        if self.price <= ZERO:
            raise ValidationError(f"Order price must be positive, got {self.price}")


@dataclass(frozen=True)
class BrokerExecution:
    """What the broker did with an order. Never raised, always returned."""

    fill_price: float
    fee: float
    latency_ms: float
    failed: bool
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @classmethod
    def filled(cls, fill_price: float, fee: float, latency_ms: float) -> "BrokerExecution":
        return cls(fill_price=fill_price, fee=fee, latency_ms=latency_ms, failed=False)

    @classmethod
    def rejected(cls, error_message: str, latency_ms: float) -> "BrokerExecution":
        return cls(
            fill_price=ZERO,
            fee=ZERO,
            latency_ms=latency_ms,
            failed=True,
            error_message=error_message,
        )
