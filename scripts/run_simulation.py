#!/usr/bin/env python3
"""
Simulation Script: Swing Trading Engine

Runs a number of trading cycles against random-walk quotes and randomly
generated swing-trade signals, one simulated trading day per cycle, then
prints portfolio metrics and performance statistics.
"""

import argparse
import asyncio
import sys
from datetime import UTC, datetime, timedelta

from loguru import logger
from tqdm import tqdm

from swingtrader.config.settings import (
    BrokerConfig,
    EngineConfig,
    EngineSettings,
    ExitConfig,
    LoggingConfig,
    PortfolioConfig,
)
from swingtrader.core.constants import DEFAULT_SECTOR_MAP
from swingtrader.engine.trading_engine import create_trading_engine
from swingtrader.infrastructure.logging import configure_logging
from swingtrader.infrastructure.persistence import InMemoryPersistence
from swingtrader.infrastructure.sources import RandomSignalSource, RandomWalkQuoteSource

DEFAULT_PRICES = {
    "AAPL": 190.0,
    "MSFT": 410.0,
    "GOOGL": 140.0,
    "AMZN": 175.0,
    "TSLA": 240.0,
    "JPM": 195.0,
    "BAC": 35.0,
    "JNJ": 155.0,
    "PFE": 28.0,
}


class SimulatedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


async def run_simulation(args: argparse.Namespace) -> int:
    clock = SimulatedClock(datetime(2024, 1, 2, 14, 30, tzinfo=UTC))
    settings = EngineSettings(
        broker=BrokerConfig(latency_ms=args.latency_ms, failure_rate=args.failure_rate, seed=args.seed),
        portfolio=PortfolioConfig(initial_cash=args.initial_cash),
        exit=ExitConfig(max_holding_days=args.max_holding_days),
        engine=EngineConfig(schedule_enabled=False),
        logging=LoggingConfig(level="DEBUG" if args.debug else "WARNING"),
    )
    configure_logging(settings.logging)

    prices = {symbol: price for symbol, price in DEFAULT_PRICES.items() if symbol in DEFAULT_SECTOR_MAP}
    quotes = RandomWalkQuoteSource(
        prices, volatility_percent=args.volatility, seed=args.seed, clock=clock
    )
    signals = RandomSignalSource(
        quotes,
        buy_probability=args.buy_probability,
        position_budget=args.initial_cash * 0.1,
        seed=args.seed,
        clock=clock,
    )
    engine = create_trading_engine(
        InMemoryPersistence(), signals, quote_source=quotes, settings=settings, clock=clock
    )

    await engine.start()
    try:
        with tqdm(total=args.cycles, desc="Trading cycles", unit="cycle") as pbar:
            for _ in range(args.cycles):
                result = await engine.execute_trading_cycle()
                pbar.set_postfix(trades=result.trade_count, errors=len(result.errors))
                pbar.update(1)
                clock.advance(timedelta(days=1))
    finally:
        await engine.stop()

    metrics = engine.portfolio_manager.update_portfolio_metrics()
    stats = await engine.portfolio_manager.get_performance_stats()
    status = engine.get_status()

    print(f"\nCycles: {status.cycles_completed} completed, {status.cycles_failed} failed")
    print(f"Total value:   {metrics.total_value:>14,.2f}")
    print(f"Cash:          {metrics.cash_balance:>14,.2f} ({metrics.cash_percentage:.1f}%)")
    print(f"Open positions:{metrics.position_count:>14}")
    print(f"Total PnL:     {metrics.total_pnl:>14,.2f}")
    print(f"Round trips:   {stats.total_trades:>14}")
    print(f"Win rate:      {stats.win_rate:>13.1f}%")
    print(f"Profit factor: {stats.profit_factor:>14.2f}")
    print(f"Max drawdown:  {stats.max_drawdown:>13.2f}%")
    print(f"Sharpe ratio:  {stats.sharpe_ratio:>14.2f}")
    for sector, value in sorted(metrics.sector_exposure.items()):
        print(f"  {sector:<24}{value:>12,.2f}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Run the swing trading engine against simulated market data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Thirty simulated trading days
  python scripts/run_simulation.py --cycles 30 --seed 7

  # Noisier market with a 10 day holding limit
  python scripts/run_simulation.py --cycles 60 --volatility 3 --max-holding-days 10
        """,
    )

    parser.add_argument("--cycles", type=int, default=20, help="Number of trading cycles (default: 20)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument(
        "--initial-cash", type=float, default=100_000.0, help="Starting cash (default: 100000)"
    )
    parser.add_argument(
        "--volatility", type=float, default=1.5, help="Daily price volatility in percent (default: 1.5)"
    )
    parser.add_argument(
        "--buy-probability",
        type=float,
        default=0.2,
        help="Chance per symbol per cycle of a buy signal (default: 0.2)",
    )
    parser.add_argument(
        "--failure-rate", type=float, default=0.01, help="Broker rejection rate (default: 0.01)"
    )
    parser.add_argument(
        "--latency-ms", type=float, default=0.0, help="Simulated broker latency (default: 0)"
    )
    parser.add_argument(
        "--max-holding-days", type=float, default=None, help="Enable time-based exits"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.cycles <= 0:
        logger.error("Number of cycles must be positive")
        return 1

    try:
        return asyncio.run(run_simulation(args))
    except Exception as e:
        logger.exception(f"Simulation failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
