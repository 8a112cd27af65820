"""Helper classes for the portfolio manager to reduce complexity."""

import math
from dataclasses import replace
from datetime import datetime

from swingtrader.core.enums import TradeAction
from swingtrader.core.exceptions.engine import InsufficientFundsError, ValidationError
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.position import Position
from swingtrader.core.models.signal import TradingSignal
from swingtrader.core.types.financial import ZERO, calculate_pnl, weighted_average_price
from swingtrader.core.utils.validation import (
    validate_non_negative,
    validate_probability,
    validate_symbol,
)


def _is_finite_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and math.isfinite(value)


class SignalValidator:
    """Structural validation of incoming signals."""

    @staticmethod
    def validate_structure(signal: TradingSignal) -> tuple[str, TradeAction]:
        """Check the parts of a signal needed to attempt a trade.

        Args:
            signal: Signal to validate

        Returns:
            Normalized symbol and parsed action

        Raises:
            ValidationError: If symbol, action, size, confidence or price is malformed
        """
        symbol = validate_symbol(signal.symbol)

        action = signal.parsed_action
        if action is None:
            raise ValidationError(f"action must be BUY or SELL, got {signal.action!r}")

        size = signal.recommended_size
        if not _is_finite_number(size) or size <= 0:
            raise ValidationError(f"recommended_size must be positive and finite, got {size}")

        validate_probability(signal.confidence, "confidence")

        price = signal.entry_price
        if price is not None and not _is_finite_number(price):
            raise ValidationError(f"entry_price must be finite, got {price}")
        if action.is_buy and (price is None or price <= ZERO):
            raise ValidationError(f"entry_price must be positive, got {price}")

        if signal.stop_loss is not None:
            if not _is_finite_number(signal.stop_loss):
                raise ValidationError(f"stop_loss must be finite, got {signal.stop_loss}")
            validate_non_negative(signal.stop_loss, "stop_loss")
        for target in signal.profit_targets:
            if not _is_finite_number(target.price):
                raise ValidationError(f"profit target price must be finite, got {target.price}")

        return symbol, action


class FillApplier:
    """Applies a broker fill to in-memory portfolio state.

    Callers take a checkpoint first; these methods mutate in place.
    """

    @staticmethod
    def apply_buy(
        portfolio: Portfolio,
        symbol: str,
        quantity: int,
        fill_price: float,
        fee: float,
        signal: TradingSignal,
        sector: str | None,
        now: datetime,
    ) -> tuple[Position, bool]:
        """Open or add to a position and debit cash.

        Returns:
            The affected position and whether it was newly created

        Raises:
            InsufficientFundsError: If cash cannot cover the fill and fee
        """
        cost = quantity * fill_price + fee
        if cost > portfolio.cash_balance:
            raise InsufficientFundsError(cost, portfolio.cash_balance, f"buying {symbol}")

        position = portfolio.find_open(symbol)
        created = position is None
        if position is None:
            position = Position(
                symbol=symbol,
                quantity=quantity,
                entry_price=fill_price,
                current_price=fill_price,
                portfolio_id=portfolio.id,
                entry_date=now,
                stop_loss=signal.stop_loss if signal.stop_loss > ZERO else ZERO,
                profit_targets=signal.profit_targets,
                sector=sector,
                last_updated=now,
            )
            portfolio.add_position(position)
        else:
            position.entry_price = weighted_average_price(
                position.quantity, position.entry_price, quantity, fill_price
            )
            position.quantity += quantity
            if signal.stop_loss > ZERO:
                position.stop_loss = signal.stop_loss
            if signal.profit_targets and not position.profit_targets:
                position.profit_targets = signal.profit_targets
                position.targets_hit = 0
            position.mark(fill_price, now)

        portfolio.cash_balance -= cost
        return position, created

    @staticmethod
    def apply_sell(
        portfolio: Portfolio,
        position: Position,
        quantity: int,
        fill_price: float,
        fee: float,
        signal: TradingSignal,
        now: datetime,
    ) -> float:
        """Reduce or close a position and credit cash.

        Returns:
            Realized PnL of the sold shares, net of the sell fee

        Raises:
            ValidationError: If more shares are sold than held
        """
        if quantity > position.quantity:
            raise ValidationError(
                f"Cannot sell {quantity} {position.symbol}, only {position.quantity} held"
            )

        realized = calculate_pnl(position.entry_price, fill_price, quantity) - fee
        position.quantity -= quantity
        position.realized_pnl += realized

        if signal.target_index is not None and position.profit_targets:
            met = min(signal.target_index + 1, len(position.profit_targets))
            position.targets_hit = max(position.targets_hit, met)

        if position.quantity == 0:
            position.current_price = fill_price
            position.unrealized_pnl = ZERO
            position.closed_at = now
            position.last_updated = now
        else:
            position.mark(fill_price, now)

        portfolio.cash_balance += quantity * fill_price - fee
        return realized

    @staticmethod
    def voided(position: Position, now: datetime) -> Position:
        """Closed, zero-quantity copy used to undo a persisted position creation."""
        return replace(
            position,
            quantity=0,
            unrealized_pnl=ZERO,
            realized_pnl=ZERO,
            closed_at=now,
            last_updated=now,
        )
