"""
Trading signal and profit target models.

Signals are produced outside the engine (signal generator, exit monitor)
and are immutable once received. They are only shape-normalized here;
structural validation happens when a signal is executed.
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from swingtrader.core.enums import ExitReason, TradeAction
from swingtrader.core.utils.clock import utc_now


@dataclass(frozen=True)
class ProfitTarget:
    """A price level at which part of a position is taken off.

    exit_percentage is the share of the remaining quantity to sell when the
    target is crossed, in percent units. None means the configured default
    for the target's index applies.
    """

    price: float
    exit_percentage: float | None = None


def normalize_targets(targets: Iterable[ProfitTarget | float]) -> tuple[ProfitTarget, ...]:
    """Coerce bare prices to ProfitTarget and order targets by ascending price."""
    normalized = [
        target if isinstance(target, ProfitTarget) else ProfitTarget(price=float(target))
        for target in targets
    ]
    return tuple(sorted(normalized, key=lambda target: target.price))


@dataclass(frozen=True)
class TradingSignal:
    """A buy or sell recommendation."""

    symbol: str
    action: TradeAction | str
    confidence: float
    recommended_size: float
    entry_price: float
    stop_loss: float = 0.0
    profit_targets: tuple[ProfitTarget, ...] = ()
    timestamp: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    reasoning: str = ""
    sector: str | None = None
    exit_reason: ExitReason | None = None
    target_index: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "profit_targets", normalize_targets(self.profit_targets))

    @property
    def parsed_action(self) -> TradeAction | None:
        """The action as an enum, or None if it is not BUY/SELL."""
        return TradeAction.parse(self.action)

    @property
    def is_exit(self) -> bool:
        """Check if the signal was generated by exit criteria."""
        return self.exit_reason is not None
