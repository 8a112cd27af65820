"""
In-memory implementation of the persistence port.

Suitable for simulations and tests. Everything lives for the lifetime of
the process.
"""

from datetime import datetime

from loguru import logger

from swingtrader.core.enums import TradeStatus
from swingtrader.core.exceptions.engine import PersistenceError
from swingtrader.core.interfaces.persistence import IPersistencePort
from swingtrader.core.models.execution_log import ExecutionLogEntry
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.position import Position
from swingtrader.core.models.snapshot import PortfolioSnapshot
from swingtrader.core.models.trade import Trade
from swingtrader.infrastructure.persistence.codecs import (
    LOG_ENTRY_CODEC,
    PORTFOLIO_CODEC,
    POSITION_CODEC,
    SNAPSHOT_CODEC,
    TRADE_CODEC,
)
from swingtrader.infrastructure.persistence.entity_store import EntityStore


class InMemoryPersistence(IPersistencePort):
    """Persistence port backed by per-entity record stores."""

    def __init__(self) -> None:
        self.portfolios = EntityStore(PORTFOLIO_CODEC)
        self.positions = EntityStore(POSITION_CODEC)
        self.trades = EntityStore(TRADE_CODEC)
        self.snapshots = EntityStore(SNAPSHOT_CODEC)
        self.execution_logs = EntityStore(LOG_ENTRY_CODEC)

    async def create_portfolio(self, portfolio: Portfolio) -> Portfolio:
        stored = self.portfolios.insert(portfolio)
        logger.debug(f"Created portfolio {portfolio.id} with cash {portfolio.cash_balance:.2f}")
        return stored

    async def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        return self.portfolios.get(portfolio_id)

    async def update_portfolio(self, portfolio: Portfolio) -> Portfolio:
        return self.portfolios.update(portfolio)

    async def create_position(self, position: Position) -> Position:
        self._require_portfolio(position.portfolio_id, "create_position")
        open_same_symbol = self.positions.find(
            lambda p: p.portfolio_id == position.portfolio_id
            and p.symbol == position.symbol
            and p.is_open
        )
        if position.is_open and open_same_symbol:
            raise PersistenceError(
                "create_position", f"open position for {position.symbol} already exists"
            )
        return self.positions.insert(position)

    async def update_position(self, position: Position) -> Position:
        return self.positions.update(position)

    async def get_open_positions(self, portfolio_id: str) -> list[Position]:
        return self.positions.find(lambda p: p.portfolio_id == portfolio_id and p.is_open)

    async def get_positions(self, portfolio_id: str) -> list[Position]:
        return self.positions.find(lambda p: p.portfolio_id == portfolio_id)

    async def create_trade(self, trade: Trade) -> Trade:
        return self.trades.insert(trade)

    async def get_trades(
        self, status: TradeStatus | None = None, limit: int | None = None
    ) -> list[Trade]:
        trades = self.trades.find(lambda t: status is None or t.status == status)
        trades.sort(key=lambda t: t.timestamp)
        return trades[-limit:] if limit else trades

    async def save_snapshot(self, snapshot: PortfolioSnapshot) -> PortfolioSnapshot:
        return self.snapshots.insert(snapshot)

    async def get_latest_snapshot(self, portfolio_id: str) -> PortfolioSnapshot | None:
        snapshots = await self.get_snapshots(portfolio_id, limit=1)
        return snapshots[0] if snapshots else None

    async def get_snapshots(
        self, portfolio_id: str, since: datetime | None = None, limit: int | None = None
    ) -> list[PortfolioSnapshot]:
        snapshots = self.snapshots.find(
            lambda s: s.portfolio_id == portfolio_id and (since is None or s.timestamp >= since)
        )
        snapshots.sort(key=lambda s: s.timestamp, reverse=True)
        return snapshots[:limit] if limit else snapshots

    async def append_execution_log(self, entry: ExecutionLogEntry) -> ExecutionLogEntry:
        return self.execution_logs.insert(entry)

    async def get_execution_logs(self, cycle_id: str | None = None) -> list[ExecutionLogEntry]:
        entries = self.execution_logs.find(lambda e: cycle_id is None or e.cycle_id == cycle_id)
        entries.sort(key=lambda e: e.sequence)
        return entries

    def _require_portfolio(self, portfolio_id: str, operation: str) -> None:
        if self.portfolios.get(portfolio_id) is None:
            raise PersistenceError(operation, f"unknown portfolio {portfolio_id}")
