"""
Point-in-time portfolio snapshots.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.types.financial import percentage_of


@dataclass(frozen=True)
class PositionSnapshot:
    symbol: str
    quantity: int
    price: float
    value: float
    unrealized_pnl: float
    percentage: float


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Append-only record of portfolio totals and holdings."""

    portfolio_id: str
    timestamp: datetime
    total_value: float
    cash_balance: float
    position_count: int
    daily_pnl: float
    total_pnl: float
    positions: tuple[PositionSnapshot, ...] = ()
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def capture(cls, portfolio: Portfolio, timestamp: datetime) -> "PortfolioSnapshot":
        """Build a snapshot of the portfolio's open holdings."""
        open_positions = portfolio.open_positions()
        return cls(
            portfolio_id=portfolio.id,
            timestamp=timestamp,
            total_value=portfolio.total_value,
            cash_balance=portfolio.cash_balance,
            position_count=len(open_positions),
            daily_pnl=portfolio.daily_pnl,
            total_pnl=portfolio.total_pnl,
            positions=tuple(
                PositionSnapshot(
                    symbol=position.symbol,
                    quantity=position.quantity,
                    price=position.current_price,
                    value=position.market_value,
                    unrealized_pnl=position.unrealized_pnl,
                    percentage=percentage_of(position.market_value, portfolio.total_value),
                )
                for position in open_positions
            ),
        )
