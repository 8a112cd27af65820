"""
Persistence port consumed by the portfolio manager and orchestrator.

Implementations raise PersistenceError for every failure; a call that
returns normally has been durably applied.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from swingtrader.core.enums import TradeStatus
from swingtrader.core.models.execution_log import ExecutionLogEntry
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.position import Position
from swingtrader.core.models.snapshot import PortfolioSnapshot
from swingtrader.core.models.trade import Trade


class IPersistencePort(ABC):
    """Abstract interface for durable engine state."""

    @abstractmethod
    async def create_portfolio(self, portfolio: Portfolio) -> Portfolio:
        """Persist a new portfolio (totals only, positions are stored separately)."""
        pass

    @abstractmethod
    async def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        """Load portfolio totals, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_portfolio(self, portfolio: Portfolio) -> Portfolio:
        """Overwrite portfolio totals."""
        pass

    @abstractmethod
    async def create_position(self, position: Position) -> Position:
        """Persist a newly opened position."""
        pass

    @abstractmethod
    async def update_position(self, position: Position) -> Position:
        """Overwrite an existing position."""
        pass

    @abstractmethod
    async def get_open_positions(self, portfolio_id: str) -> list[Position]:
        """Load positions with quantity > 0."""
        pass

    @abstractmethod
    async def get_positions(self, portfolio_id: str) -> list[Position]:
        """Load all positions, open and closed."""
        pass

    @abstractmethod
    async def create_trade(self, trade: Trade) -> Trade:
        """Append a trade to the audit trail."""
        pass

    @abstractmethod
    async def get_trades(
        self, status: TradeStatus | None = None, limit: int | None = None
    ) -> list[Trade]:
        """Load trades in chronological order."""
        pass

    @abstractmethod
    async def save_snapshot(self, snapshot: PortfolioSnapshot) -> PortfolioSnapshot:
        """Append a portfolio snapshot."""
        pass

    @abstractmethod
    async def get_latest_snapshot(self, portfolio_id: str) -> PortfolioSnapshot | None:
        pass

    @abstractmethod
    async def get_snapshots(
        self, portfolio_id: str, since: datetime | None = None, limit: int | None = None
    ) -> list[PortfolioSnapshot]:
        """Load snapshots newest first."""
        pass

    @abstractmethod
    async def append_execution_log(self, entry: ExecutionLogEntry) -> ExecutionLogEntry:
        pass

    @abstractmethod
    async def get_execution_logs(self, cycle_id: str | None = None) -> list[ExecutionLogEntry]:
        """Load execution log entries in append order."""
        pass

    async def ping(self) -> bool:
        """Check the store is reachable."""
        return True
