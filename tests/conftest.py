"""
Shared fixtures for engine tests.

Brokers are deterministic (no latency, no slippage, seeded, never
rejecting unless a test says so) and clocks are fixed so results can be
asserted exactly.
"""

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio

from swingtrader.config.settings import (
    BrokerConfig,
    EngineConfig,
    EngineSettings,
    ExitConfig,
    PortfolioConfig,
    RiskLimits,
)
from swingtrader.core.enums import TradeAction
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.position import Position
from swingtrader.core.models.signal import ProfitTarget, TradingSignal
from swingtrader.engine.mock_broker import MockBroker
from swingtrader.engine.portfolio_manager import PortfolioManager
from swingtrader.infrastructure.persistence import InMemoryPersistence

START_TIME = datetime(2024, 3, 4, 15, 0, tzinfo=UTC)


class FixedClock:
    """Test clock that only moves when advanced."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_settings(
    risk: RiskLimits | None = None,
    fee: float = 1.0,
    slippage_percent: float = 0.0,
    failure_rate: float = 0.0,
    initial_cash: float = 100_000.0,
    exit_config: ExitConfig | None = None,
) -> EngineSettings:
    return EngineSettings(
        risk=risk or RiskLimits(),
        broker=BrokerConfig(
            latency_ms=0.0,
            slippage_percent=slippage_percent,
            fee_per_trade=fee,
            failure_rate=failure_rate,
            seed=42,
        ),
        portfolio=PortfolioConfig(initial_cash=initial_cash),
        exit=exit_config or ExitConfig(),
        engine=EngineConfig(schedule_enabled=False),
    )


def buy_signal(
    symbol: str = "AAPL",
    size: float = 10,
    price: float = 150.0,
    stop_loss: float = 0.0,
    targets: tuple[ProfitTarget | float, ...] = (),
    **kwargs,
) -> TradingSignal:
    return TradingSignal(
        symbol=symbol,
        action=TradeAction.BUY,
        confidence=0.8,
        recommended_size=size,
        entry_price=price,
        stop_loss=stop_loss,
        profit_targets=targets,
        **kwargs,
    )


def sell_signal(
    symbol: str = "AAPL", size: float = 10, price: float = 150.0, **kwargs
) -> TradingSignal:
    return TradingSignal(
        symbol=symbol,
        action=TradeAction.SELL,
        confidence=0.8,
        recommended_size=size,
        entry_price=price,
        **kwargs,
    )


def make_position(
    symbol: str = "AAPL",
    quantity: int = 10,
    entry_price: float = 100.0,
    current_price: float | None = None,
    portfolio_id: str = "default",
    **kwargs,
) -> Position:
    return Position(
        symbol=symbol,
        quantity=quantity,
        entry_price=entry_price,
        current_price=current_price if current_price is not None else entry_price,
        portfolio_id=portfolio_id,
        entry_date=kwargs.pop("entry_date", START_TIME),
        last_updated=kwargs.pop("last_updated", START_TIME),
        **kwargs,
    )


def make_portfolio(cash: float = 100_000.0, positions: list[Position] | None = None) -> Portfolio:
    portfolio = Portfolio.create("default", cash, START_TIME)
    for position in positions or []:
        portfolio.add_position(position)
        portfolio.cash_balance -= position.quantity * position.entry_price
    portfolio.recalculate(START_TIME)
    return portfolio


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def settings() -> EngineSettings:
    return make_settings()


@pytest_asyncio.fixture
async def manager(
    persistence: InMemoryPersistence, settings: EngineSettings, clock: FixedClock
) -> PortfolioManager:
    """Initialized portfolio manager over an empty in-memory store."""
    pm = PortfolioManager(
        persistence, broker=MockBroker(settings.broker), settings=settings, clock=clock
    )
    await pm.initialize()
    return pm
