"""
Derived portfolio metrics and performance statistics.

Both are value objects computed on demand from portfolio state and trade
history; nothing mutates them after construction.
"""

from dataclasses import dataclass, field
from datetime import datetime

from swingtrader.core.types.financial import ZERO


@dataclass(frozen=True)
class LargestPosition:
    """Biggest open holding by market value. Empty symbol means no holdings."""

    symbol: str = ""
    value: float = ZERO
    percentage: float = ZERO

    @property
    def is_empty(self) -> bool:
        return not self.symbol


@dataclass(frozen=True)
class PortfolioMetrics:
    """Snapshot-free view of current portfolio state."""

    total_value: float
    cash_balance: float
    cash_percentage: float
    invested_value: float
    position_count: int
    largest_position: LargestPosition
    sector_exposure: dict[str, float]
    sector_exposure_percent: dict[str, float]
    unrealized_pnl: float
    realized_pnl: float
    daily_pnl: float
    total_pnl: float
    last_updated: datetime


@dataclass(frozen=True)
class PerformanceStats:
    """Aggregates over the full trade history."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = ZERO
    average_win: float = ZERO
    average_loss: float = ZERO
    profit_factor: float = ZERO
    gross_profit: float = ZERO
    gross_loss: float = ZERO
    net_profit: float = ZERO
    total_fees: float = ZERO
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    average_holding_period_days: float = ZERO
    max_drawdown: float = ZERO
    current_drawdown: float = ZERO
    sharpe_ratio: float = ZERO
    last_updated: datetime | None = field(default=None, compare=False)
