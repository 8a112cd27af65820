"""
Unit tests for the simulated broker.
"""

from unittest.mock import AsyncMock, patch

import pytest

from swingtrader.config.settings import BrokerConfig
from swingtrader.core.enums import TradeAction
from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.models.broker import BrokerOrder
from swingtrader.engine.mock_broker import MockBroker


def make_broker(**overrides) -> MockBroker:
    config = {"latency_ms": 0.0, "slippage_percent": 0.0, "failure_rate": 0.0, "seed": 7}
    config.update(overrides)
    return MockBroker(BrokerConfig(**config))


class TestFillPrice:
    """Test slippage direction."""

    def test_should_slip_buys_up_and_sells_down(self) -> None:
        broker = make_broker(slippage_percent=1.0)

        assert broker.fill_price(100.0, TradeAction.BUY) == pytest.approx(101.0)
        assert broker.fill_price(100.0, TradeAction.SELL) == pytest.approx(99.0)

    def test_should_floor_fill_price_at_one_cent(self) -> None:
        broker = make_broker(slippage_percent=50.0)

        assert broker.fill_price(0.015, TradeAction.SELL) == 0.01

    def test_should_reject_non_positive_reference_price(self) -> None:
        with pytest.raises(ValidationError, match="price must be positive"):
            make_broker().fill_price(0.0, TradeAction.BUY)

    def test_should_report_worst_case_buy_price(self) -> None:
        broker = make_broker(slippage_percent=0.5)
        assert broker.worst_case_fill_price(200.0) == pytest.approx(201.0)


class TestExecute:
    """Test order execution outcomes."""

    @pytest.mark.asyncio
    async def test_should_fill_order_with_fee(self) -> None:
        # Arrange
        broker = make_broker(fee_per_trade=2.5, slippage_percent=0.1)
        order = BrokerOrder("AAPL", TradeAction.BUY, 10, 150.0)

        # Act
        execution = await broker.execute(order)

        # Assert
        assert execution.succeeded
        assert execution.fill_price == pytest.approx(150.15)
        assert execution.fee == 2.5
        assert execution.error_message is None

    @pytest.mark.asyncio
    async def test_should_reject_every_order_at_full_failure_rate(self) -> None:
        """Rejections are returned, not raised."""
        broker = make_broker(failure_rate=1.0)

        execution = await broker.execute(BrokerOrder("AAPL", TradeAction.BUY, 10, 150.0))

        assert execution.failed
        assert execution.error_message == "Mock broker rejected order"
        assert execution.fee == 0.0
        assert broker.orders_rejected == 1
        assert broker.rejection_rate == 1.0

    @pytest.mark.asyncio
    async def test_should_be_deterministic_for_a_seed(self) -> None:
        """Same seed, same sequence of rejections."""
        order = BrokerOrder("AAPL", TradeAction.BUY, 1, 10.0)
        first = make_broker(failure_rate=0.5, seed=123)
        second = make_broker(failure_rate=0.5, seed=123)

        outcomes_a = [(await first.execute(order)).failed for _ in range(20)]
        outcomes_b = [(await second.execute(order)).failed for _ in range(20)]

        assert outcomes_a == outcomes_b
        assert any(outcomes_a) and not all(outcomes_a)

    @pytest.mark.asyncio
    async def test_should_sleep_for_configured_latency(self) -> None:
        broker = make_broker(latency_ms=50.0)

        with patch("swingtrader.engine.mock_broker.asyncio.sleep", new=AsyncMock()) as sleep:
            execution = await broker.execute(BrokerOrder("AAPL", TradeAction.SELL, 1, 10.0))

        sleep.assert_awaited_once_with(0.05)
        assert execution.latency_ms == 50.0

    @pytest.mark.asyncio
    async def test_should_keep_jittered_latency_within_bounds(self) -> None:
        broker = make_broker(latency_ms=50.0, latency_jitter_ms=10.0)

        with patch("swingtrader.engine.mock_broker.asyncio.sleep", new=AsyncMock()):
            latencies = [
                (await broker.execute(BrokerOrder("AAPL", TradeAction.BUY, 1, 10.0))).latency_ms
                for _ in range(10)
            ]

        assert all(40.0 <= latency <= 60.0 for latency in latencies)

    def test_should_start_with_zero_rejection_rate(self) -> None:
        assert make_broker().rejection_rate == 0.0


class TestBrokerOrder:
    """Test order validation."""

    def test_should_reject_invalid_orders(self) -> None:
        with pytest.raises(ValidationError, match="quantity must be positive"):
            BrokerOrder("AAPL", TradeAction.BUY, 0, 10.0)
        with pytest.raises(ValidationError, match="price must be positive"):
            BrokerOrder("AAPL", TradeAction.BUY, 1, 0.0)
