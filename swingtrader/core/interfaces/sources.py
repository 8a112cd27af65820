"""
Signal and quote source interfaces.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from swingtrader.core.models.market import Quote
from swingtrader.core.models.position import Position
from swingtrader.core.models.signal import TradingSignal


class ISignalSource(ABC):
    """Abstract interface for the upstream signal generator."""

    @abstractmethod
    async def get_buy_signals(self) -> list[TradingSignal]:
        """Get this cycle's buy signals."""
        pass

    @abstractmethod
    async def get_sell_signals(self, positions: Sequence[Position]) -> list[TradingSignal]:
        """Get this cycle's sell signals for the given open positions."""
        pass


class IQuoteSource(ABC):
    """Abstract interface for market quotes."""

    @abstractmethod
    async def get_quotes(self, symbols: Sequence[str]) -> list[Quote]:
        """Get latest quotes; symbols without a quote are omitted."""
        pass
