"""
Position domain model.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.models.signal import ProfitTarget
from swingtrader.core.types.financial import ZERO, calculate_pnl, percentage_of
from swingtrader.core.utils.clock import utc_now


@dataclass
class Position:
    """A long holding of one symbol.

    A position with quantity 0 is closed. Closed positions are kept for the
    rest of the session so their realized PnL stays visible.
    """

    symbol: str
    quantity: int
    entry_price: float
    current_price: float
    portfolio_id: str
    entry_date: datetime = field(default_factory=utc_now)
    stop_loss: float = ZERO
    profit_targets: tuple[ProfitTarget, ...] = ()
    unrealized_pnl: float = ZERO
    realized_pnl: float = ZERO
    sector: str | None = None
    last_updated: datetime = field(default_factory=utc_now)
    targets_hit: int = 0
    closed_at: datetime | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        """Validate position data after initialization."""
        if not self.symbol:
            raise ValidationError("Position symbol is required")
        if self.quantity < 0:
            raise ValidationError(f"Quantity must be non-negative, got {self.quantity}")
        if self.entry_price <= ZERO:
            raise ValidationError(f"Entry price must be positive, got {self.entry_price}")
        if self.current_price <= ZERO:
            raise ValidationError(f"Current price must be positive, got {self.current_price}")
        if not 0 <= self.targets_hit <= len(self.profit_targets):
            raise ValidationError(
                f"targets_hit must be between 0 and {len(self.profit_targets)}, got {self.targets_hit}"
            )

    @property
    def is_open(self) -> bool:
        return self.quantity > 0

    @property
    def market_value(self) -> float:
        """Current market value of the holding."""
        return self.quantity * self.current_price

    @property
    def unrealized_pnl_percent(self) -> float:
        return percentage_of(self.unrealized_pnl, self.quantity * self.entry_price)

    def mark(self, price: float, timestamp: datetime) -> None:
        """Reprice the position and refresh its unrealized PnL.

        Args:
            price: New market price
            timestamp: Time of the quote

        Raises:
            ValidationError: If price is not positive
        """
        if price <= ZERO:
            raise ValidationError(f"Price must be positive, got {price}")
        self.current_price = price
        self.unrealized_pnl = calculate_pnl(self.entry_price, price, self.quantity)
        self.last_updated = timestamp

    def next_target(self) -> tuple[int, ProfitTarget] | None:
        """Get the first profit target not yet met, with its index."""
        if self.targets_hit >= len(self.profit_targets):
            return None
        return self.targets_hit, self.profit_targets[self.targets_hit]

    def holding_days(self, now: datetime) -> float:
        return (now - self.entry_date).total_seconds() / 86400
