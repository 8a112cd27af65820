"""
Unit tests for the portfolio manager.

Brokers fill at the requested price (no slippage) with a $1 fee unless a
test configures otherwise.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from swingtrader.config.settings import RiskLimits
from swingtrader.core.enums import RiskLevel, TradeAction, TradeStatus
from swingtrader.core.exceptions.engine import (
    InitializationError,
    PersistenceError,
    PositionNotFoundError,
    ValidationError,
)
from swingtrader.core.models.market import Quote
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.risk import RiskValidation
from swingtrader.core.models.signal import TradingSignal
from swingtrader.engine.mock_broker import MockBroker
from swingtrader.engine.portfolio_manager import PortfolioManager
from swingtrader.engine.risk_manager import RiskManager
from swingtrader.infrastructure.persistence import InMemoryPersistence
from tests.conftest import (
    START_TIME,
    FixedClock,
    buy_signal,
    make_position,
    make_settings,
    sell_signal,
)


async def make_manager(
    persistence: InMemoryPersistence, clock: FixedClock, **settings_kwargs
) -> PortfolioManager:
    settings = make_settings(**settings_kwargs)
    manager = PortfolioManager(
        persistence, broker=MockBroker(settings.broker), settings=settings, clock=clock
    )
    await manager.initialize()
    return manager


def wide_limits() -> RiskLimits:
    return RiskLimits(max_position_percentage=20.0)


class TestInitialize:
    """Test loading and creating the portfolio."""

    @pytest.mark.asyncio
    async def test_should_create_default_portfolio(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        # Act
        manager = await make_manager(persistence, clock)

        # Assert
        portfolio = manager.get_portfolio()
        assert manager.is_initialized
        assert portfolio.cash_balance == 100_000.0
        assert portfolio.total_value == 100_000.0
        assert portfolio.positions == []
        assert len(persistence.portfolios) == 1

    @pytest.mark.asyncio
    async def test_should_load_existing_state(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        # Arrange
        await persistence.create_portfolio(Portfolio.create("default", 90_000.0, START_TIME))
        await persistence.create_position(make_position("AAPL", 10, 100.0, current_price=120.0))

        # Act
        manager = await make_manager(persistence, clock)

        # Assert
        portfolio = manager.get_portfolio()
        assert portfolio.cash_balance == 90_000.0
        assert portfolio.total_value == 91_200.0
        assert manager.get_position_by_symbol("aapl").quantity == 10

    @pytest.mark.asyncio
    async def test_should_raise_initialization_error_when_store_fails(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        persistence.get_portfolio = AsyncMock(  # type: ignore[method-assign]
            side_effect=PersistenceError("get_portfolio", "store offline")
        )
        manager = PortfolioManager(persistence, settings=make_settings(), clock=clock)

        with pytest.raises(InitializationError, match="store offline"):
            await manager.initialize()
        assert not manager.is_initialized

    @pytest.mark.asyncio
    async def test_should_refuse_operations_before_initialize(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        manager = PortfolioManager(persistence, settings=make_settings(), clock=clock)

        with pytest.raises(InitializationError, match="not initialized"):
            manager.get_portfolio()
        with pytest.raises(InitializationError, match="not initialized"):
            await manager.execute_trade_order(buy_signal())
        with pytest.raises(InitializationError, match="not initialized"):
            manager.update_portfolio_metrics()


class TestExecuteBuy:
    """Test buy execution."""

    @pytest.mark.asyncio
    async def test_should_open_position_and_debit_cash(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        """100 AAPL at $150 with a $1 fee leaves $84,999 cash."""
        # Arrange
        manager = await make_manager(persistence, clock, risk=wide_limits())

        # Act
        result = await manager.execute_trade_order(buy_signal("AAPL", 100, 150.0))

        # Assert
        assert result.success
        assert result.trade.quantity == 100
        assert result.trade.price == 150.0
        assert result.trade.fees == 1.0
        portfolio = manager.get_portfolio()
        assert portfolio.cash_balance == 84_999.0
        assert portfolio.total_value == 99_999.0
        assert portfolio.invariant_holds()
        position = manager.get_position_by_symbol("AAPL")
        assert position.quantity == 100
        assert position.entry_price == 150.0
        assert position.sector == "Technology"
        assert len(persistence.positions) == 1
        assert len(persistence.trades) == 1

    @pytest.mark.asyncio
    async def test_should_size_oversized_buy_to_position_limit(
        self, manager: PortfolioManager
    ) -> None:
        """10,000 shares at $1,000 shrink to at most $10,000 of stock."""
        result = await manager.execute_trade_order(buy_signal("AAPL", 10_000, 1000.0))

        assert result.success
        assert 0 < result.trade.quantity <= 10
        assert result.trade.quantity * result.trade.price <= 10_000.0
        assert result.validation.adjusted_size == 10

    @pytest.mark.asyncio
    async def test_should_average_entry_when_adding(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        limits = RiskLimits(max_position_percentage=40.0, max_sector_concentration=60.0)
        manager = await make_manager(persistence, clock, risk=limits, fee=0.0)

        await manager.execute_trade_order(buy_signal("AAPL", 100, 150.0))
        await manager.execute_trade_order(buy_signal("AAPL", 100, 160.0))

        position = manager.get_position_by_symbol("AAPL")
        assert position.quantity == 200
        assert position.entry_price == pytest.approx(155.0)
        assert len(manager.get_open_positions()) == 1

    @pytest.mark.asyncio
    async def test_should_cover_slippage_and_fee_in_size(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        """A slipped buy never spends more cash than is available."""
        # Arrange
        limits = RiskLimits(
            max_position_percentage=100.0, max_risk_per_trade=100.0, max_sector_concentration=100.0
        )
        manager = await make_manager(
            persistence, clock, initial_cash=1_000.0, slippage_percent=1.0, fee=5.0, risk=limits
        )

        # Act
        result = await manager.execute_trade_order(buy_signal("AAPL", 10, 100.0))

        # Assert
        assert result.success
        assert result.trade.quantity == 9
        assert manager.get_portfolio().cash_balance >= 0


class TestExecuteSell:
    """Test sell execution."""

    @pytest.mark.asyncio
    async def test_should_realize_pnl_on_partial_sell(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        """Buy 100 @ 150, sell 50 @ 155: realized $249 after the sell fee."""
        # Arrange
        manager = await make_manager(persistence, clock, risk=wide_limits())
        await manager.execute_trade_order(buy_signal("AAPL", 100, 150.0))

        # Act
        result = await manager.execute_trade_order(sell_signal("AAPL", 50, 155.0))

        # Assert
        assert result.success
        assert result.trade.realized_pnl == 249.0
        portfolio = manager.get_portfolio()
        assert portfolio.cash_balance == 92_748.0
        position = manager.get_position_by_symbol("AAPL")
        assert position.quantity == 50
        assert position.entry_price == 150.0
        assert position.current_price == 155.0
        assert position.realized_pnl == 249.0
        assert portfolio.invariant_holds()

    @pytest.mark.asyncio
    async def test_should_close_position_on_full_sell(self, manager: PortfolioManager) -> None:
        await manager.execute_trade_order(buy_signal("AAPL", 10, 150.0))

        result = await manager.execute_trade_order(sell_signal("AAPL", 10, 140.0))

        assert result.success
        assert manager.get_position_by_symbol("AAPL") is None
        assert manager.get_open_positions() == []
        closed = manager.get_current_positions()
        assert len(closed) == 1
        assert closed[0].quantity == 0
        assert closed[0].realized_pnl == -101.0
        assert closed[0].closed_at == START_TIME

    @pytest.mark.asyncio
    async def test_should_cap_sell_at_held_quantity(self, manager: PortfolioManager) -> None:
        await manager.execute_trade_order(buy_signal("AAPL", 10, 150.0))

        result = await manager.execute_trade_order(sell_signal("AAPL", 25, 150.0))

        assert result.success
        assert result.trade.quantity == 10

    @pytest.mark.asyncio
    async def test_should_reject_sell_without_position(
        self, manager: PortfolioManager, persistence: InMemoryPersistence
    ) -> None:
        result = await manager.execute_trade_order(sell_signal("AAPL", 10, 150.0))

        assert not result.success
        assert result.error == "Invalid position size"
        assert result.trade is None
        assert len(persistence.trades) == 0


class TestExecuteFailures:
    """Test failed executions."""

    @pytest.mark.asyncio
    async def test_should_reject_malformed_signal(
        self, manager: PortfolioManager, persistence: InMemoryPersistence
    ) -> None:
        result = await manager.execute_trade_order(buy_signal("AAPL", size=0))

        assert not result.success
        assert result.error.startswith("Invalid signal:")
        assert len(persistence.trades) == 0

    @pytest.mark.asyncio
    async def test_should_reject_bad_confidence(self, manager: PortfolioManager) -> None:
        signal = TradingSignal("AAPL", TradeAction.BUY, 1.5, 10, 150.0)

        result = await manager.execute_trade_order(signal)

        assert not result.success
        assert "confidence" in result.error

    @pytest.mark.asyncio
    async def test_should_reject_negative_stop_loss(
        self, manager: PortfolioManager, persistence: InMemoryPersistence
    ) -> None:
        result = await manager.execute_trade_order(buy_signal("AAPL", 10, 150.0, stop_loss=-5.0))

        assert not result.success
        assert result.error == "Invalid signal: stop_loss must be non-negative, got -5.0"
        assert len(persistence.trades) == 0

    @pytest.mark.asyncio
    async def test_should_record_broker_rejection_without_state_change(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        """A rejected order leaves a FAILED trade and untouched cash."""
        # Arrange
        manager = await make_manager(persistence, clock, failure_rate=1.0)

        # Act
        result = await manager.execute_trade_order(buy_signal("AAPL", 10, 150.0))

        # Assert
        assert not result.success
        assert result.error == "Mock broker rejected order"
        assert result.trade.status == TradeStatus.FAILED
        assert result.trade.fees == 0.0
        stored = await persistence.get_trades()
        assert [t.status for t in stored] == [TradeStatus.FAILED]
        assert manager.get_portfolio().cash_balance == 100_000.0
        assert manager.get_open_positions() == []

    @pytest.mark.asyncio
    async def test_should_reject_buys_when_breaker_tripped(self, manager: PortfolioManager) -> None:
        await manager.execute_trade_order(buy_signal("AAPL", 60, 150.0))
        await manager.update_position_prices({"AAPL": 90.0})

        result = await manager.execute_trade_order(buy_signal("MSFT", 10, 100.0))

        assert not result.success
        assert "Daily loss limit breached" in result.error
        assert manager.get_risk_metrics().buying_halted

    @pytest.mark.asyncio
    async def test_should_reset_daily_loss_breaker_next_day_when_flat(
        self, manager: PortfolioManager, clock: FixedClock
    ) -> None:
        """Closing out after a bad day must not halt buying on the following day."""
        # Arrange
        await manager.execute_trade_order(buy_signal("AAPL", 60, 150.0))
        await manager.update_position_prices({"AAPL": 80.0})
        await manager.execute_trade_order(sell_signal("AAPL", 60, 80.0))
        assert manager.get_open_positions() == []
        assert manager.get_portfolio().daily_pnl == pytest.approx(-4_202.0)

        same_day = await manager.execute_trade_order(buy_signal("MSFT", 10, 100.0))
        assert not same_day.success
        assert "Daily loss limit breached" in same_day.error

        # Act
        clock.advance(days=1)
        metrics = manager.get_risk_metrics()
        next_day = await manager.execute_trade_order(buy_signal("MSFT", 10, 100.0))

        # Assert
        assert not metrics.buying_halted
        assert next_day.success
        portfolio = manager.get_portfolio()
        assert portfolio.trading_day == clock().date()
        assert portfolio.day_start_value == pytest.approx(95_798.0)
        assert portfolio.daily_pnl == pytest.approx(-1.0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "signal",
        [
            buy_signal("AAPL", size=float("inf")),
            buy_signal("AAPL", size=float("nan")),
            buy_signal("AAPL", price=float("nan")),
            buy_signal("AAPL", price=float("inf")),
            buy_signal("AAPL", stop_loss=float("inf")),
            buy_signal("AAPL", targets=(float("nan"),)),
            sell_signal("AAPL", price=float("nan")),
        ],
        ids=[
            "inf-size",
            "nan-size",
            "nan-entry",
            "inf-entry",
            "inf-stop",
            "nan-target",
            "nan-sell-price",
        ],
    )
    async def test_should_reject_non_finite_signal_values(
        self,
        manager: PortfolioManager,
        persistence: InMemoryPersistence,
        signal: TradingSignal,
    ) -> None:
        result = await manager.execute_trade_order(signal)

        assert not result.success
        assert result.error.startswith("Invalid signal:")
        assert "finite" in result.error
        assert len(persistence.trades) == 0
        assert manager.get_portfolio().cash_balance == 100_000.0

    @pytest.mark.asyncio
    async def test_should_raise_position_not_found_when_filled_sell_has_no_position(
        self, persistence: InMemoryPersistence, clock: FixedClock
    ) -> None:
        """A sell that gets past risk checks still needs an open position to apply to."""
        settings = make_settings()
        risk_manager = Mock(spec=RiskManager)
        risk_manager.validate.return_value = RiskValidation.approve(10, "ok", RiskLevel.LOW, [])
        manager = PortfolioManager(
            persistence,
            broker=MockBroker(settings.broker),
            risk_manager=risk_manager,
            settings=settings,
            clock=clock,
        )
        await manager.initialize()

        with pytest.raises(PositionNotFoundError) as exc_info:
            await manager.execute_trade_order(sell_signal("AAPL", 10, 150.0))

        assert exc_info.value.symbol == "AAPL"
        assert manager.get_portfolio().cash_balance == 100_000.0
        assert len(persistence.trades) == 0


class TestConcurrency:
    """Test serialized execution."""

    @pytest.mark.asyncio
    async def test_should_serialize_concurrent_trades(self, manager: PortfolioManager) -> None:
        symbols = ["AAPL", "JPM", "JNJ", "AMZN", "PFE"]

        results = await asyncio.gather(
            *(manager.execute_trade_order(buy_signal(symbol, 10, 100.0)) for symbol in symbols)
        )

        assert all(result.success for result in results)
        portfolio = manager.get_portfolio()
        assert portfolio.cash_balance == 100_000.0 - 5 * 1_001.0
        assert len(portfolio.open_positions()) == 5
        assert portfolio.invariant_holds()


class TestPositionSizing:
    """Test calculate_position_size."""

    @pytest.mark.asyncio
    async def test_should_preview_size_without_executing(
        self, manager: PortfolioManager, persistence: InMemoryPersistence
    ) -> None:
        size = manager.calculate_position_size(buy_signal("AAPL", 10_000, 1000.0))

        assert 0 < size <= 10
        assert len(persistence.trades) == 0
        assert manager.get_portfolio().cash_balance == 100_000.0

    @pytest.mark.asyncio
    async def test_should_return_zero_for_rejected_signal(self, manager: PortfolioManager) -> None:
        assert manager.calculate_position_size(sell_signal("AAPL", 10)) == 0
        assert manager.calculate_position_size(buy_signal("", 10)) == 0

    @pytest.mark.asyncio
    async def test_should_expose_risk_preview(self, manager: PortfolioManager) -> None:
        validation = manager.preview_risk(buy_signal("AAPL", 10_000, 1000.0))

        assert validation.approved
        assert validation.adjusted_size == 10


class TestPriceUpdates:
    """Test repricing."""

    @pytest.mark.asyncio
    async def test_should_reprice_held_symbols_only(
        self, manager: PortfolioManager, persistence: InMemoryPersistence
    ) -> None:
        # Arrange
        await manager.execute_trade_order(buy_signal("AAPL", 10, 150.0))

        # Act
        count = await manager.update_position_prices({"AAPL": 160.0, "MSFT": 300.0})

        # Assert
        assert count == 1
        position = manager.get_position_by_symbol("AAPL")
        assert position.current_price == 160.0
        assert position.unrealized_pnl == 100.0
        portfolio = manager.get_portfolio()
        assert portfolio.total_value == portfolio.cash_balance + 1_600.0
        stored = await persistence.get_open_positions("default")
        assert stored[0].current_price == 160.0
        assert (await persistence.get_portfolio("default")).total_value == portfolio.total_value

    @pytest.mark.asyncio
    async def test_should_accept_quote_objects(self, manager: PortfolioManager) -> None:
        await manager.execute_trade_order(buy_signal("AAPL", 10, 150.0))

        count = await manager.update_position_prices([Quote("AAPL", 151.0, START_TIME)])

        assert count == 1

    @pytest.mark.asyncio
    async def test_should_ignore_non_positive_quotes(self, manager: PortfolioManager) -> None:
        await manager.execute_trade_order(buy_signal("AAPL", 10, 150.0))

        count = await manager.update_position_prices({"AAPL": 0.0})

        assert count == 0
        assert manager.get_position_by_symbol("AAPL").current_price == 150.0


class TestMetricsAndSnapshots:
    """Test metrics, performance and snapshots."""

    @pytest.mark.asyncio
    async def test_should_compute_metrics_idempotently(self, manager: PortfolioManager) -> None:
        # Arrange
        await manager.execute_trade_order(buy_signal("AAPL", 10, 100.0))
        await manager.execute_trade_order(buy_signal("JPM", 20, 100.0))

        # Act
        first = manager.update_portfolio_metrics()
        second = manager.update_portfolio_metrics()

        # Assert
        assert first == second
        assert first.position_count == 2
        assert first.invested_value == 3_000.0
        assert first.largest_position.symbol == "JPM"
        assert first.sector_exposure == {"Technology": 1_000.0, "Financials": 2_000.0}
        assert first.total_value == first.cash_balance + first.invested_value

    @pytest.mark.asyncio
    async def test_should_report_empty_largest_position(self, manager: PortfolioManager) -> None:
        metrics = manager.update_portfolio_metrics()

        assert metrics.largest_position.is_empty
        assert metrics.cash_percentage == 100.0

    @pytest.mark.asyncio
    async def test_should_aggregate_performance(self, manager: PortfolioManager) -> None:
        await manager.execute_trade_order(buy_signal("AAPL", 10, 100.0))
        await manager.execute_trade_order(sell_signal("AAPL", 10, 110.0))

        stats = await manager.get_performance_stats()

        assert stats.total_trades == 2
        assert stats.winning_trades == 1
        assert stats.win_rate == 100.0
        assert stats.total_fees == 2.0
        assert stats.net_profit == pytest.approx(98.0)

    @pytest.mark.asyncio
    async def test_should_return_recent_snapshots_newest_first(
        self, manager: PortfolioManager, clock: FixedClock
    ) -> None:
        # Arrange
        old = await manager.take_snapshot()
        clock.advance(days=40)
        recent = await manager.take_snapshot()
        clock.advance(hours=1)
        newest = await manager.take_snapshot()

        # Act
        history = await manager.get_snapshot_history()

        # Assert
        assert [s.id for s in history] == [newest.id, recent.id]
        assert old.id not in {s.id for s in history}

    @pytest.mark.asyncio
    async def test_should_reject_non_positive_history_window(
        self, manager: PortfolioManager
    ) -> None:
        with pytest.raises(ValidationError, match="days must be positive"):
            await manager.get_snapshot_history(days=0)

    @pytest.mark.asyncio
    async def test_should_return_independent_copies(self, manager: PortfolioManager) -> None:
        await manager.execute_trade_order(buy_signal("AAPL", 10, 100.0))

        copy = manager.get_portfolio()
        copy.cash_balance = 0.0
        copy.positions[0].quantity = 999

        assert manager.get_portfolio().cash_balance == 100_000.0 - 1_001.0
        assert manager.get_position_by_symbol("AAPL").quantity == 10


class TestTradeActionParsing:
    """Test string actions reach the broker as enums."""

    @pytest.mark.asyncio
    async def test_should_accept_lower_case_action(self, manager: PortfolioManager) -> None:
        lowered = TradingSignal(
            symbol="aapl", action="buy", confidence=0.8, recommended_size=10, entry_price=100.0
        )

        result = await manager.execute_trade_order(lowered)

        assert result.success
        assert result.trade.action == TradeAction.BUY
        assert result.trade.symbol == "AAPL"
