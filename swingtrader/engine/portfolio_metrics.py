"""
Derived portfolio metrics.

Pure computations over portfolio state; nothing here mutates the portfolio.
"""

from swingtrader.core.models.metrics import LargestPosition, PortfolioMetrics
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.types.financial import ZERO, percentage_of


class PortfolioMetricsCalculator:
    """Computes PortfolioMetrics from a portfolio."""

    def __init__(self, sector_map: dict[str, str] | None = None):
        self._sector_map = sector_map or {}

    def calculate(self, portfolio: Portfolio) -> PortfolioMetrics:
        """Compute metrics for the current state.

        Args:
            portfolio: Portfolio to summarize

        Returns:
            PortfolioMetrics; identical inputs always give identical results
        """
        open_positions = portfolio.open_positions()
        invested = portfolio.positions_value()
        total_value = portfolio.cash_balance + invested

        sector_exposure = portfolio.sector_values(self._sector_map)
        sector_percent = {
            sector: percentage_of(value, total_value) for sector, value in sector_exposure.items()
        }

        return PortfolioMetrics(
            total_value=total_value,
            cash_balance=portfolio.cash_balance,
            cash_percentage=percentage_of(portfolio.cash_balance, total_value),
            invested_value=invested,
            position_count=len(open_positions),
            largest_position=self.largest_position(portfolio),
            sector_exposure=sector_exposure,
            sector_exposure_percent=sector_percent,
            unrealized_pnl=sum((p.unrealized_pnl for p in open_positions), ZERO),
            realized_pnl=sum((p.realized_pnl for p in portfolio.positions), ZERO),
            daily_pnl=portfolio.daily_pnl,
            total_pnl=portfolio.total_pnl,
            last_updated=portfolio.last_updated,
        )

    def largest_position(self, portfolio: Portfolio) -> LargestPosition:
        """Largest open position by market value, or the empty sentinel."""
        open_positions = portfolio.open_positions()
        if not open_positions:
            return LargestPosition()
        largest = max(open_positions, key=lambda p: (p.market_value, p.symbol))
        return LargestPosition(
            symbol=largest.symbol,
            value=largest.market_value,
            percentage=percentage_of(largest.market_value, portfolio.total_value),
        )
