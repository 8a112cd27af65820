"""
Quote sources.

Static and random-walk quote generators for simulation and tests, plus a
TTL cache that sits in front of any other quote source.
"""

import random
import time
from collections.abc import Callable, Mapping, Sequence

from cachetools import TTLCache
from loguru import logger

from swingtrader.core.constants import MIN_FILL_PRICE
from swingtrader.core.interfaces.sources import IQuoteSource
from swingtrader.core.models.market import Quote
from swingtrader.core.utils.clock import Clock, utc_now
from swingtrader.core.utils.validation import validate_positive, validate_symbol


def _normalize_prices(prices: Mapping[str, float]) -> dict[str, float]:
    normalized = {}
    for symbol, price in prices.items():
        normalized[validate_symbol(symbol)] = validate_positive(float(price), f"price of {symbol}")
    return normalized


class StaticQuoteSource(IQuoteSource):
    """Quotes from a fixed, settable price table."""

    def __init__(self, prices: Mapping[str, float] | None = None, clock: Clock = utc_now):
        self._prices = _normalize_prices(prices or {})
        self._clock = clock

    def set_price(self, symbol: str, price: float) -> None:
        self._prices[validate_symbol(symbol)] = validate_positive(price, "price")

    async def get_quotes(self, symbols: Sequence[str]) -> list[Quote]:
        now = self._clock()
        quotes = []
        for symbol in symbols:
            symbol = symbol.strip().upper()
            if symbol in self._prices:
                quotes.append(Quote(symbol=symbol, price=self._prices[symbol], timestamp=now))
        return quotes


class RandomWalkQuoteSource(IQuoteSource):
    """Gaussian random-walk prices.

    Every quote request advances the requested symbols by one step of
    ``price * (1 + N(drift, volatility) / 100)``, floored at the minimum
    fill price. Seeded sources are reproducible.
    """

    def __init__(
        self,
        initial_prices: Mapping[str, float],
        volatility_percent: float = 1.0,
        drift_percent: float = 0.0,
        seed: int | None = None,
        clock: Clock = utc_now,
    ):
        self._prices = _normalize_prices(initial_prices)
        self.volatility_percent = validate_positive(volatility_percent, "volatility_percent")
        self.drift_percent = drift_percent
        self._rng = random.Random(seed)
        self._clock = clock

    @property
    def symbols(self) -> list[str]:
        return sorted(self._prices)

    def last_price(self, symbol: str) -> float | None:
        """Most recent price without advancing the walk."""
        return self._prices.get(symbol.strip().upper())

    def advance(self, symbol: str) -> float:
        symbol = validate_symbol(symbol)
        step = self._rng.gauss(self.drift_percent, self.volatility_percent) / 100
        price = max(MIN_FILL_PRICE, self._prices[symbol] * (1 + step))
        self._prices[symbol] = price
        return price

    async def get_quotes(self, symbols: Sequence[str]) -> list[Quote]:
        now = self._clock()
        quotes = []
        for symbol in symbols:
            symbol = symbol.strip().upper()
            if symbol not in self._prices:
                continue
            quotes.append(Quote(symbol=symbol, price=self.advance(symbol), timestamp=now))
        return quotes


class CachingQuoteSource(IQuoteSource):
    """TTL cache in front of another quote source.

    Cached symbols are served locally; all misses of one request are
    fetched from the wrapped source in a single call.
    """

    DEFAULT_CACHE_SIZE = 1000

    def __init__(
        self,
        source: IQuoteSource,
        ttl_seconds: float = 60.0,
        maxsize: int = DEFAULT_CACHE_SIZE,
        timer: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")
        self._source = source
        self._cache: TTLCache[str, Quote] = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self.hits = 0
        self.misses = 0

    async def get_quotes(self, symbols: Sequence[str]) -> list[Quote]:
        requested = [symbol.strip().upper() for symbol in symbols]
        found: dict[str, Quote] = {}
        missing = []
        for symbol in requested:
            quote = self._cache.get(symbol)
            if quote is None:
                missing.append(symbol)
            else:
                found[symbol] = quote
        self.hits += len(found)
        self.misses += len(missing)

        if missing:
            for quote in await self._source.get_quotes(missing):
                self._cache[quote.symbol] = quote
                found[quote.symbol] = quote
            logger.debug(f"Quote cache: {len(requested) - len(missing)} hits, {len(missing)} misses")
        return [found[symbol] for symbol in dict.fromkeys(requested) if symbol in found]

    def clear(self) -> None:
        self._cache.clear()
