"""
Performance statistics over trade and snapshot history.

Trade history is folded into round trips (flat → open → flat per symbol)
with pandas; drawdown and Sharpe ratio come from the snapshot value series.
"""

import math
from collections.abc import Sequence
from datetime import datetime

import numpy as np
import pandas as pd

from swingtrader.core.constants import TRADING_DAYS_PER_YEAR
from swingtrader.core.enums import TradeAction
from swingtrader.core.models.metrics import PerformanceStats
from swingtrader.core.models.snapshot import PortfolioSnapshot
from swingtrader.core.models.trade import Trade
from swingtrader.core.types.financial import ZERO

TRADE_COLUMNS = ["timestamp", "symbol", "action", "quantity", "price", "fees", "realized_pnl"]
ROUND_TRIP_COLUMNS = ["symbol", "opened_at", "closed_at", "pnl"]


class PerformanceCalculator:
    """Aggregates executed trades and snapshots into PerformanceStats."""

    def calculate(
        self,
        trades: Sequence[Trade],
        snapshots: Sequence[PortfolioSnapshot],
        net_profit: float,
        current_value: float,
        now: datetime,
    ) -> PerformanceStats:
        """Compute performance statistics.

        Args:
            trades: Trade history (non-executed trades are ignored)
            snapshots: Snapshot history in any order
            net_profit: Current total PnL of the portfolio
            current_value: Current total value, appended to the value series
            now: Timestamp for the current value and last_updated

        Returns:
            PerformanceStats
        """
        values = self._value_series(snapshots, current_value, now)
        max_drawdown, current_drawdown = self._drawdowns(values)
        sharpe = self._sharpe_ratio(values)

        df = self.trades_frame(trades)
        if df.empty:
            return PerformanceStats(
                net_profit=net_profit,
                max_drawdown=max_drawdown,
                current_drawdown=current_drawdown,
                sharpe_ratio=sharpe,
                last_updated=now,
            )

        round_trips = self.round_trips(df)
        pnl = round_trips["pnl"]
        wins = pnl[pnl > 0]
        losses = pnl[pnl < 0]
        gross_profit = float(wins.sum())
        gross_loss = float(abs(losses.sum()))
        winning = len(wins)
        losing = len(losses)
        closed = len(round_trips)
        max_wins, max_losses = self._streaks(round_trips)

        holding_days = ZERO
        if closed:
            durations = round_trips["closed_at"] - round_trips["opened_at"]
            holding_days = float(durations.dt.total_seconds().mean() / 86400)

        return PerformanceStats(
            total_trades=len(df),
            winning_trades=winning,
            losing_trades=losing,
            win_rate=winning / closed * 100 if closed else ZERO,
            average_win=float(wins.mean()) if not wins.empty else ZERO,
            average_loss=float(abs(losses.mean())) if not losses.empty else ZERO,
            profit_factor=self._profit_factor(gross_profit, gross_loss),
            gross_profit=gross_profit,
            gross_loss=gross_loss,
            net_profit=net_profit,
            total_fees=float(df["fees"].sum()),
            max_consecutive_wins=max_wins,
            max_consecutive_losses=max_losses,
            average_holding_period_days=holding_days,
            max_drawdown=max_drawdown,
            current_drawdown=current_drawdown,
            sharpe_ratio=sharpe,
            last_updated=now,
        )

    def trades_frame(self, trades: Sequence[Trade]) -> pd.DataFrame:
        """Executed trades as a chronologically sorted DataFrame."""
        rows = [
            {
                "timestamp": trade.timestamp,
                "symbol": trade.symbol,
                "action": trade.action.value,
                "quantity": trade.quantity,
                "price": trade.price,
                "fees": trade.fees,
                "realized_pnl": trade.realized_pnl,
            }
            for trade in trades
            if trade.is_executed
        ]
        df = pd.DataFrame(rows, columns=TRADE_COLUMNS)
        return df.sort_values("timestamp", kind="stable").reset_index(drop=True)

    def round_trips(self, df: pd.DataFrame) -> pd.DataFrame:
        """Fold executed trades into closed round trips.

        A round trip's PnL is the realized PnL of its sells minus the fees of
        its buys. Still-open holdings produce no row.
        """
        rows = []
        for symbol, group in df.groupby("symbol", sort=False):
            quantity = 0
            opened_at = None
            pnl = ZERO
            for trade in group.itertuples(index=False):
                if trade.action == TradeAction.BUY.value:
                    if quantity == 0:
                        opened_at = trade.timestamp
                        pnl = ZERO
                    quantity += trade.quantity
                    pnl -= trade.fees
                    continue
                quantity -= trade.quantity
                pnl += trade.realized_pnl
                if quantity <= 0 and opened_at is not None:
                    rows.append(
                        {
                            "symbol": symbol,
                            "opened_at": opened_at,
                            "closed_at": trade.timestamp,
                            "pnl": pnl,
                        }
                    )
                    quantity = 0
                    opened_at = None
        round_trips = pd.DataFrame(rows, columns=ROUND_TRIP_COLUMNS)
        if round_trips.empty:
            return round_trips
        round_trips["opened_at"] = pd.to_datetime(round_trips["opened_at"], utc=True)
        round_trips["closed_at"] = pd.to_datetime(round_trips["closed_at"], utc=True)
        return round_trips.sort_values("closed_at", kind="stable").reset_index(drop=True)

    @staticmethod
    def _profit_factor(gross_profit: float, gross_loss: float) -> float:
        if gross_loss > 0:
            return gross_profit / gross_loss
        return ZERO

    @staticmethod
    def _streaks(round_trips: pd.DataFrame) -> tuple[int, int]:
        """Longest runs of winning and losing round trips."""
        if round_trips.empty:
            return 0, 0
        outcome = np.sign(round_trips["pnl"])
        run_id = (outcome != outcome.shift()).cumsum()
        runs = outcome.groupby(run_id).agg(["first", "size"])
        wins = runs.loc[runs["first"] > 0, "size"]
        losses = runs.loc[runs["first"] < 0, "size"]
        return (int(wins.max()) if not wins.empty else 0, int(losses.max()) if not losses.empty else 0)

    @staticmethod
    def _value_series(
        snapshots: Sequence[PortfolioSnapshot], current_value: float, now: datetime
    ) -> pd.Series:
        points = [(s.timestamp, s.total_value) for s in snapshots]
        points.append((now, current_value))
        index = pd.to_datetime([timestamp for timestamp, _ in points], utc=True)
        series = pd.Series([value for _, value in points], index=index, dtype=float)
        return series.sort_index(kind="stable")

    @staticmethod
    def _drawdowns(values: pd.Series) -> tuple[float, float]:
        """Maximum and current decline from the running peak, in percent."""
        running_peak = values.cummax()
        drawdown = ((running_peak - values) / running_peak * 100).where(running_peak > 0, ZERO)
        return float(drawdown.max()), float(drawdown.iloc[-1])

    @staticmethod
    def _sharpe_ratio(values: pd.Series) -> float:
        """Annualized Sharpe ratio of daily returns (risk-free rate 0)."""
        daily = values.resample("1D").last().dropna()
        returns = daily.pct_change().dropna()
        if len(returns) < 2:
            return ZERO
        std = returns.std()
        if std == 0 or np.isnan(std):
            return ZERO
        return float(returns.mean() / std * math.sqrt(TRADING_DAYS_PER_YEAR))
