"""
Exit criteria monitor.

Turns open positions into synthetic SELL signals. Per position, stop loss
is checked first and wins outright; only then is the next unmet profit
target checked; an optional holding-period limit comes last. Positions are
evaluated independently; ordering their execution is the orchestrator's job.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from swingtrader.config.settings import ExitConfig
from swingtrader.core.constants import EXIT_SIGNAL_CONFIDENCE
from swingtrader.core.enums import ExitReason, TradeAction
from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.models.position import Position
from swingtrader.core.models.signal import TradingSignal
from swingtrader.core.types.financial import ZERO
from swingtrader.core.utils.clock import Clock, utc_now


@dataclass(frozen=True)
class ExitCheckResult:
    """Outcome of one pass over a set of positions."""

    exit_signals: list[TradingSignal]
    positions_checked: int
    criteria_triggered: list[str]
    check_time: datetime
    errors: list[str] = field(default_factory=list)


class ExitCriteriaMonitor:
    """Evaluates stop-loss, profit-target and holding-period rules."""

    def __init__(self, config: ExitConfig | None = None, clock: Clock = utc_now):
        self.config = config or ExitConfig()
        self._clock = clock
        self._monitoring = False

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    def start_monitoring(self) -> None:
        if not self._monitoring:
            self._monitoring = True
            logger.info("Exit criteria monitoring started")

    def stop_monitoring(self) -> None:
        if self._monitoring:
            self._monitoring = False
            logger.info("Exit criteria monitoring stopped")

    def check_exit_criteria(self, positions: Sequence[Position]) -> list[TradingSignal]:
        """Produce exit signals for the given positions.

        Args:
            positions: Positions to evaluate; closed ones are skipped

        Returns:
            At most one SELL signal per position
        """
        return self.check_positions(positions).exit_signals

    def check_positions(self, positions: Sequence[Position]) -> ExitCheckResult:
        """Evaluate positions and report what was checked and triggered."""
        now = self._clock()
        signals: list[TradingSignal] = []
        triggered: list[str] = []
        errors: list[str] = []
        checked = 0

        for position in positions:
            if not position.is_open:
                continue
            checked += 1
            try:
                signal = self.evaluate_position(position, now)
            except (ValidationError, ValueError) as e:
                errors.append(f"{position.symbol}: {e}")
                logger.error(f"Exit check failed for {position.symbol}: {e}")
                continue
            if signal is not None:
                signals.append(signal)
                triggered.append(position.symbol)

        if signals:
            logger.info(f"Exit criteria triggered for {', '.join(triggered)}")
        return ExitCheckResult(
            exit_signals=signals,
            positions_checked=checked,
            criteria_triggered=triggered,
            check_time=now,
            errors=errors,
        )

    def evaluate_position(self, position: Position, now: datetime) -> TradingSignal | None:
        """Apply the exit rules to one open position, highest priority first."""
        price = position.current_price
        if price <= ZERO:
            raise ValidationError(f"Position {position.symbol} has no valid current price")

        if position.stop_loss > ZERO and price <= position.stop_loss:
            return self._exit_signal(
                position,
                position.quantity,
                ExitReason.STOP_LOSS,
                f"Stop loss triggered at ${price:.2f} (stop ${position.stop_loss:.2f})",
                now,
            )

        pending = position.next_target()
        if pending is not None:
            index, target = pending
            if price >= target.price:
                quantity = self._target_quantity(position, index)
                return self._exit_signal(
                    position,
                    quantity,
                    ExitReason.PROFIT_TARGET,
                    f"Profit target {index + 1} reached at ${price:.2f} (target ${target.price:.2f})",
                    now,
                    target_index=index,
                )

        max_days = self.config.max_holding_days
        if max_days is not None and position.holding_days(now) >= max_days:
            return self._exit_signal(
                position,
                position.quantity,
                ExitReason.TIME_EXIT,
                f"Maximum holding period of {max_days:g} days reached",
                now,
            )
        return None

    def _target_quantity(self, position: Position, index: int) -> int:
        """Shares to sell for a target: the configured share, or all on the final one."""
        if index >= len(position.profit_targets) - 1:
            return position.quantity
        target = position.profit_targets[index]
        percentage = target.exit_percentage
        if percentage is None:
            percentage = self.config.exit_percentage_for(index)
        quantity = math.floor(position.quantity * percentage / 100)
        return min(position.quantity, max(1, quantity))

    def _exit_signal(
        self,
        position: Position,
        quantity: int,
        reason: ExitReason,
        message: str,
        now: datetime,
        target_index: int | None = None,
    ) -> TradingSignal:
        logger.debug(f"{position.symbol}: {reason.tag(target_index)} for {quantity} shares")
        return TradingSignal(
            symbol=position.symbol,
            action=TradeAction.SELL,
            confidence=EXIT_SIGNAL_CONFIDENCE,
            recommended_size=quantity,
            entry_price=position.current_price,
            stop_loss=position.stop_loss,
            timestamp=now,
            reasoning=f"{reason.tag(target_index)}: {message}",
            sector=position.sector,
            exit_reason=reason,
            target_index=target_index,
        )
