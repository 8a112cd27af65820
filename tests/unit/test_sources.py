"""
Unit tests for signal and quote sources.
"""

from collections.abc import Sequence

import pytest

from swingtrader.core.enums import TradeAction
from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.models.market import Quote
from swingtrader.infrastructure.sources import (
    CachingQuoteSource,
    RandomSignalSource,
    RandomWalkQuoteSource,
    StaticQuoteSource,
    StaticSignalSource,
)
from tests.conftest import START_TIME, FixedClock, buy_signal, make_position, sell_signal


class ManualTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class RecordingQuoteSource(StaticQuoteSource):
    """Static quotes that remember every request."""

    def __init__(self, prices: dict[str, float]) -> None:
        super().__init__(prices, clock=FixedClock())
        self.requests: list[list[str]] = []

    async def get_quotes(self, symbols: Sequence[str]) -> list[Quote]:
        self.requests.append(list(symbols))
        return await super().get_quotes(symbols)


class TestStaticSignalSource:
    """Test queued signal batches."""

    @pytest.mark.asyncio
    async def test_should_return_nothing_when_empty(self) -> None:
        source = StaticSignalSource()

        assert await source.get_buy_signals() == []
        assert await source.get_sell_signals([]) == []

    @pytest.mark.asyncio
    async def test_should_replay_batches_in_order(self) -> None:
        source = StaticSignalSource()
        first_buy = buy_signal("AAPL")
        first_sell = sell_signal("MSFT")
        second_buy = buy_signal("GOOGL")
        source.queue_cycle(buys=[first_buy], sells=[first_sell])
        source.queue_cycle(buys=[second_buy])
        assert source.pending_cycles == 2

        assert await source.get_buy_signals() == [first_buy]
        assert await source.get_sell_signals([]) == [first_sell]
        assert source.pending_cycles == 1

        assert await source.get_buy_signals() == [second_buy]
        assert await source.get_sell_signals([]) == []
        assert source.pending_cycles == 0

    @pytest.mark.asyncio
    async def test_should_hand_out_sells_once(self) -> None:
        source = StaticSignalSource()
        source.queue_cycle(sells=[sell_signal("AAPL")])
        await source.get_buy_signals()

        assert len(await source.get_sell_signals([])) == 1
        assert await source.get_sell_signals([]) == []


class TestStaticQuoteSource:
    """Test the fixed price table."""

    @pytest.mark.asyncio
    async def test_should_quote_known_symbols_only(self) -> None:
        clock = FixedClock()
        source = StaticQuoteSource({"aapl": 150.0, "MSFT": 400.0}, clock=clock)

        quotes = await source.get_quotes(["AAPL", " msft ", "TSLA"])

        assert quotes == [
            Quote(symbol="AAPL", price=150.0, timestamp=START_TIME),
            Quote(symbol="MSFT", price=400.0, timestamp=START_TIME),
        ]

    @pytest.mark.asyncio
    async def test_should_update_prices(self) -> None:
        source = StaticQuoteSource({"AAPL": 150.0})

        source.set_price("aapl", 155.5)

        quotes = await source.get_quotes(["AAPL"])
        assert quotes[0].price == 155.5

    def test_should_reject_non_positive_prices(self) -> None:
        with pytest.raises(ValidationError):
            StaticQuoteSource({"AAPL": 0.0})

        source = StaticQuoteSource()
        with pytest.raises(ValidationError):
            source.set_price("AAPL", -1.0)


class TestRandomWalkQuoteSource:
    """Test random-walk price generation."""

    @pytest.mark.asyncio
    async def test_should_be_reproducible_with_seed(self) -> None:
        first = RandomWalkQuoteSource({"AAPL": 100.0, "MSFT": 400.0}, seed=7)
        second = RandomWalkQuoteSource({"AAPL": 100.0, "MSFT": 400.0}, seed=7)

        for _ in range(5):
            a = await first.get_quotes(["AAPL", "MSFT"])
            b = await second.get_quotes(["AAPL", "MSFT"])
            assert [q.price for q in a] == [q.price for q in b]

    @pytest.mark.asyncio
    async def test_should_advance_on_each_request(self) -> None:
        source = RandomWalkQuoteSource({"AAPL": 100.0}, volatility_percent=2.0, seed=1)

        quotes = await source.get_quotes(["AAPL"])

        assert quotes[0].price != 100.0
        assert source.last_price("AAPL") == quotes[0].price
        assert source.last_price("aapl") == quotes[0].price

    @pytest.mark.asyncio
    async def test_should_floor_prices_at_minimum_fill(self) -> None:
        source = RandomWalkQuoteSource(
            {"PENNY": 1.0}, volatility_percent=0.0001, drift_percent=-1000.0, seed=3
        )

        quotes = await source.get_quotes(["PENNY"])

        assert quotes[0].price == 0.01

    @pytest.mark.asyncio
    async def test_should_skip_unknown_symbols(self) -> None:
        source = RandomWalkQuoteSource({"AAPL": 100.0}, seed=1)

        quotes = await source.get_quotes(["TSLA"])

        assert quotes == []
        assert source.last_price("TSLA") is None

    def test_should_list_symbols_sorted(self) -> None:
        source = RandomWalkQuoteSource({"MSFT": 400.0, "AAPL": 100.0})

        assert source.symbols == ["AAPL", "MSFT"]

    def test_should_reject_non_positive_volatility(self) -> None:
        with pytest.raises(ValidationError):
            RandomWalkQuoteSource({"AAPL": 100.0}, volatility_percent=0.0)


class TestCachingQuoteSource:
    """Test the TTL quote cache."""

    @pytest.mark.asyncio
    async def test_should_serve_repeat_requests_from_cache(self) -> None:
        # Arrange
        upstream = RecordingQuoteSource({"AAPL": 150.0, "MSFT": 400.0})
        cache = CachingQuoteSource(upstream, ttl_seconds=60.0, timer=ManualTimer())

        # Act
        await cache.get_quotes(["AAPL", "MSFT"])
        quotes = await cache.get_quotes(["AAPL", "MSFT"])

        # Assert
        assert [q.symbol for q in quotes] == ["AAPL", "MSFT"]
        assert upstream.requests == [["AAPL", "MSFT"]]
        assert cache.misses == 2
        assert cache.hits == 2

    @pytest.mark.asyncio
    async def test_should_refetch_after_expiry(self) -> None:
        timer = ManualTimer()
        upstream = RecordingQuoteSource({"AAPL": 150.0})
        cache = CachingQuoteSource(upstream, ttl_seconds=60.0, timer=timer)
        await cache.get_quotes(["AAPL"])
        upstream.set_price("AAPL", 151.0)

        timer.now = 30.0
        assert (await cache.get_quotes(["AAPL"]))[0].price == 150.0

        timer.now = 61.0
        assert (await cache.get_quotes(["AAPL"]))[0].price == 151.0
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_should_fetch_only_misses_and_keep_request_order(self) -> None:
        upstream = RecordingQuoteSource({"AAPL": 150.0, "MSFT": 400.0})
        cache = CachingQuoteSource(upstream, timer=ManualTimer())
        await cache.get_quotes(["AAPL"])

        quotes = await cache.get_quotes(["msft", "AAPL"])

        assert [q.symbol for q in quotes] == ["MSFT", "AAPL"]
        assert upstream.requests[-1] == ["MSFT"]

    @pytest.mark.asyncio
    async def test_should_return_each_symbol_once(self) -> None:
        upstream = RecordingQuoteSource({"AAPL": 150.0})
        cache = CachingQuoteSource(upstream, timer=ManualTimer())

        quotes = await cache.get_quotes(["aapl", "AAPL"])

        assert len(quotes) == 1

    @pytest.mark.asyncio
    async def test_should_not_cache_unknown_symbols(self) -> None:
        upstream = RecordingQuoteSource({"AAPL": 150.0})
        cache = CachingQuoteSource(upstream, timer=ManualTimer())

        assert await cache.get_quotes(["TSLA"]) == []
        assert await cache.get_quotes(["TSLA"]) == []
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_should_clear(self) -> None:
        upstream = RecordingQuoteSource({"AAPL": 150.0})
        cache = CachingQuoteSource(upstream, timer=ManualTimer())
        await cache.get_quotes(["AAPL"])

        cache.clear()
        await cache.get_quotes(["AAPL"])

        assert len(upstream.requests) == 2

    def test_should_reject_non_positive_ttl(self) -> None:
        with pytest.raises(ValueError, match="TTL"):
            CachingQuoteSource(StaticQuoteSource(), ttl_seconds=0)


class TestRandomSignalSource:
    """Test simulated signal generation."""

    @pytest.mark.asyncio
    async def test_should_build_buy_signals_from_quotes(self) -> None:
        quotes = RandomWalkQuoteSource({"AAPL": 100.0, "MSFT": 400.0}, seed=1)
        source = RandomSignalSource(
            quotes, buy_probability=1.0, position_budget=1_000.0, seed=1, clock=FixedClock()
        )

        signals = await source.get_buy_signals()

        assert [s.symbol for s in signals] == ["AAPL", "MSFT"]
        aapl = signals[0]
        assert aapl.action == TradeAction.BUY
        assert aapl.recommended_size == 10
        assert aapl.entry_price == 100.0
        assert aapl.stop_loss == pytest.approx(95.0)
        assert [t.price for t in aapl.profit_targets] == pytest.approx([105.0, 110.0])
        assert 0.5 <= aapl.confidence <= 1.0
        assert aapl.timestamp == START_TIME
        assert signals[1].recommended_size == 2

    @pytest.mark.asyncio
    async def test_should_size_at_least_one_share(self) -> None:
        quotes = RandomWalkQuoteSource({"BRK": 500_000.0}, seed=1)
        source = RandomSignalSource(quotes, buy_probability=1.0, position_budget=1_000.0)

        signals = await source.get_buy_signals()

        assert signals[0].recommended_size == 1

    @pytest.mark.asyncio
    async def test_should_skip_held_symbols(self) -> None:
        quotes = RandomWalkQuoteSource({"AAPL": 100.0, "MSFT": 400.0}, seed=1)
        source = RandomSignalSource(quotes, buy_probability=1.0, sell_probability=0.0, seed=1)
        await source.get_sell_signals([make_position("AAPL")])

        signals = await source.get_buy_signals()

        assert [s.symbol for s in signals] == ["MSFT"]

    @pytest.mark.asyncio
    async def test_should_sell_whole_positions(self) -> None:
        quotes = RandomWalkQuoteSource({"AAPL": 100.0}, seed=1)
        source = RandomSignalSource(quotes, sell_probability=1.0, seed=1)
        position = make_position("AAPL", quantity=25, entry_price=100.0, current_price=104.0)

        signals = await source.get_sell_signals([position])

        assert len(signals) == 1
        assert signals[0].action == TradeAction.SELL
        assert signals[0].recommended_size == 25
        assert signals[0].entry_price == 104.0

    @pytest.mark.asyncio
    async def test_should_generate_nothing_at_zero_probability(self) -> None:
        quotes = RandomWalkQuoteSource({"AAPL": 100.0}, seed=1)
        source = RandomSignalSource(quotes, buy_probability=0.0, sell_probability=0.0)

        assert await source.get_buy_signals() == []
        assert await source.get_sell_signals([make_position("AAPL")]) == []

    def test_should_validate_probabilities(self) -> None:
        quotes = RandomWalkQuoteSource({"AAPL": 100.0})

        with pytest.raises(ValidationError):
            RandomSignalSource(quotes, buy_probability=1.5)
        with pytest.raises(ValidationError):
            RandomSignalSource(quotes, stop_loss_percent=150.0)
