"""
Signal sources.

StaticSignalSource replays queued per-cycle batches; RandomSignalSource
generates plausible swing-trade signals from a random-walk quote source
for simulations.
"""

import random
from collections import deque
from collections.abc import Sequence

from loguru import logger

from swingtrader.core.enums import TradeAction
from swingtrader.core.interfaces.sources import ISignalSource
from swingtrader.core.models.position import Position
from swingtrader.core.models.signal import ProfitTarget, TradingSignal
from swingtrader.core.utils.clock import Clock, utc_now
from swingtrader.core.utils.validation import validate_percentage, validate_probability
from swingtrader.infrastructure.sources.quotes import RandomWalkQuoteSource


class StaticSignalSource(ISignalSource):
    """Replays queued signal batches, one batch per trading cycle.

    get_buy_signals opens the next batch; get_sell_signals returns that
    same batch's sells. With nothing queued both return empty lists.
    """

    def __init__(self) -> None:
        self._batches: deque[tuple[list[TradingSignal], list[TradingSignal]]] = deque()
        self._current_sells: list[TradingSignal] = []

    def queue_cycle(
        self,
        buys: Sequence[TradingSignal] = (),
        sells: Sequence[TradingSignal] = (),
    ) -> None:
        self._batches.append((list(buys), list(sells)))

    @property
    def pending_cycles(self) -> int:
        return len(self._batches)

    async def get_buy_signals(self) -> list[TradingSignal]:
        if not self._batches:
            self._current_sells = []
            return []
        buys, self._current_sells = self._batches.popleft()
        return buys

    async def get_sell_signals(self, positions: Sequence[Position]) -> list[TradingSignal]:
        sells, self._current_sells = self._current_sells, []
        return sells


class RandomSignalSource(ISignalSource):
    """Random swing-trade ideas priced off a random-walk quote source.

    Each cycle, every symbol not already held becomes a BUY with
    ``buy_probability``, sized at ``position_budget`` dollars, with a stop
    ``stop_loss_percent`` below and two profit targets above the current
    price. Held positions are discretionarily sold in full with
    ``sell_probability``.
    """

    def __init__(
        self,
        quotes: RandomWalkQuoteSource,
        buy_probability: float = 0.3,
        sell_probability: float = 0.05,
        position_budget: float = 10_000.0,
        stop_loss_percent: float = 5.0,
        target_percents: tuple[float, ...] = (5.0, 10.0),
        seed: int | None = None,
        clock: Clock = utc_now,
    ):
        self._quotes = quotes
        self.buy_probability = validate_probability(buy_probability, "buy_probability")
        self.sell_probability = validate_probability(sell_probability, "sell_probability")
        self.position_budget = position_budget
        self.stop_loss_percent = validate_percentage(stop_loss_percent, "stop_loss_percent")
        self.target_percents = target_percents
        self._rng = random.Random(seed)
        self._clock = clock
        self._held: set[str] = set()

    async def get_buy_signals(self) -> list[TradingSignal]:
        signals = []
        for symbol in self._quotes.symbols:
            if symbol in self._held or self._rng.random() >= self.buy_probability:
                continue
            price = self._quotes.last_price(symbol)
            if price is None:
                continue
            signals.append(
                TradingSignal(
                    symbol=symbol,
                    action=TradeAction.BUY,
                    confidence=round(self._rng.uniform(0.5, 1.0), 2),
                    recommended_size=max(1, int(self.position_budget // price)),
                    entry_price=price,
                    stop_loss=price * (1 - self.stop_loss_percent / 100),
                    profit_targets=tuple(
                        ProfitTarget(price=price * (1 + pct / 100)) for pct in self.target_percents
                    ),
                    timestamp=self._clock(),
                    reasoning="random entry",
                )
            )
        logger.debug(f"Generated {len(signals)} buy signals")
        return signals

    async def get_sell_signals(self, positions: Sequence[Position]) -> list[TradingSignal]:
        self._held = {p.symbol for p in positions if p.is_open}
        signals = []
        for position in positions:
            if not position.is_open or self._rng.random() >= self.sell_probability:
                continue
            signals.append(
                TradingSignal(
                    symbol=position.symbol,
                    action=TradeAction.SELL,
                    confidence=round(self._rng.uniform(0.5, 1.0), 2),
                    recommended_size=position.quantity,
                    entry_price=position.current_price,
                    timestamp=self._clock(),
                    reasoning="random discretionary exit",
                )
            )
        return signals
