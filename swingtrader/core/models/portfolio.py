"""
Portfolio state model.

The portfolio holds cash and positions and keeps its derived totals
consistent: after every mutation the owner calls ``recalculate`` so that
``total_value == cash_balance + sum(quantity * current_price)`` holds.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from swingtrader.core.constants import UNKNOWN_SECTOR, VALUE_TOLERANCE
from swingtrader.core.models.position import Position
from swingtrader.core.types.financial import ZERO, percentage_of
from swingtrader.core.utils.clock import utc_now


@dataclass
class Portfolio:
    """Cash, positions and running PnL of a simulated account."""

    initial_cash: float
    cash_balance: float
    total_value: float
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    positions: list[Position] = field(default_factory=list)
    daily_pnl: float = ZERO
    total_pnl: float = ZERO
    peak_value: float = ZERO
    day_start_value: float = ZERO
    trading_day: date | None = None
    created_at: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, portfolio_id: str, initial_cash: float, now: datetime) -> "Portfolio":
        """Create a fresh all-cash portfolio."""
        return cls(
            id=portfolio_id,
            initial_cash=initial_cash,
            cash_balance=initial_cash,
            total_value=initial_cash,
            peak_value=initial_cash,
            day_start_value=initial_cash,
            trading_day=now.date(),
            created_at=now,
            last_updated=now,
        )

    def open_positions(self) -> list[Position]:
        return [position for position in self.positions if position.is_open]

    def find_open(self, symbol: str) -> Position | None:
        """Get the open position for a symbol, if any."""
        for position in self.positions:
            if position.symbol == symbol and position.is_open:
                return position
        return None

    def add_position(self, position: Position) -> None:
        """Append a position, keeping positions ordered by symbol then entry date."""
        self.positions.append(position)
        self.positions.sort(key=lambda p: (p.symbol, p.entry_date))

    def positions_value(self) -> float:
        return sum((p.market_value for p in self.positions if p.is_open), ZERO)

    def sector_values(self, sector_of: dict[str, str] | None = None) -> dict[str, float]:
        """Sum open market value per sector.

        Args:
            sector_of: Fallback symbol-to-sector map for positions without a sector

        Returns:
            Mapping of sector to market value
        """
        exposure: dict[str, float] = {}
        for position in self.open_positions():
            sector = position.sector or (sector_of or {}).get(position.symbol) or UNKNOWN_SECTOR
            exposure[sector] = exposure.get(sector, ZERO) + position.market_value
        return exposure

    def drawdown_percent(self) -> float:
        """Decline of total value from its peak, in percent."""
        if self.peak_value <= ZERO:
            return ZERO
        return max(ZERO, percentage_of(self.peak_value - self.total_value, self.peak_value))

    def recalculate(self, now: datetime) -> None:
        """Recompute total value, PnL and peak from cash and positions.

        A new calendar day moves the daily baseline to the last known total
        value before recomputing.
        """
        today = now.date()
        if self.trading_day != today:
            self.day_start_value = self.total_value
            self.trading_day = today

        self.total_value = self.cash_balance + self.positions_value()
        self.total_pnl = self.total_value - self.initial_cash
        self.daily_pnl = self.total_value - self.day_start_value
        self.peak_value = max(self.peak_value, self.total_value)
        self.last_updated = now

    def roll_trading_day(self, now: datetime) -> bool:
        """Start a new trading day if the calendar date moved on.

        Returns:
            True if the daily baseline was reset
        """
        if self.trading_day == now.date():
            return False
        self.recalculate(now)
        return True

    def invariant_holds(self, tolerance: float = VALUE_TOLERANCE) -> bool:
        """Check that total value equals cash plus open market value."""
        return abs(self.total_value - (self.cash_balance + self.positions_value())) <= tolerance
