"""
Record codecs for persisted entities.

Each entity type gets a pair of free functions converting it to and from
a plain record of primitives (strings, numbers, lists, dicts). Stores are
configured with a codec instead of subclassing per entity.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from swingtrader.core.enums import CyclePhase, TradeAction, TradeStatus
from swingtrader.core.models.execution_log import ExecutionLogEntry, LogKind
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.position import Position
from swingtrader.core.models.signal import ProfitTarget
from swingtrader.core.models.snapshot import PortfolioSnapshot, PositionSnapshot
from swingtrader.core.models.trade import Trade

type Record = dict[str, Any]


@dataclass(frozen=True)
class RecordCodec[T]:
    """How to key, encode and decode one entity type."""

    entity: str
    key: Callable[[T], str]
    to_record: Callable[[T], Record]
    from_record: Callable[[Record], T]


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _targets_to_record(targets: tuple[ProfitTarget, ...]) -> list[Record]:
    return [{"price": t.price, "exit_percentage": t.exit_percentage} for t in targets]


def _targets_from_record(records: list[Record]) -> tuple[ProfitTarget, ...]:
    return tuple(ProfitTarget(price=r["price"], exit_percentage=r["exit_percentage"]) for r in records)


def portfolio_to_record(portfolio: Portfolio) -> Record:
    return {
        "id": portfolio.id,
        "initial_cash": portfolio.initial_cash,
        "cash_balance": portfolio.cash_balance,
        "total_value": portfolio.total_value,
        "daily_pnl": portfolio.daily_pnl,
        "total_pnl": portfolio.total_pnl,
        "peak_value": portfolio.peak_value,
        "day_start_value": portfolio.day_start_value,
        "trading_day": portfolio.trading_day.isoformat() if portfolio.trading_day else None,
        "created_at": _dt(portfolio.created_at),
        "last_updated": _dt(portfolio.last_updated),
    }


def portfolio_from_record(record: Record) -> Portfolio:
    trading_day = record["trading_day"]
    return Portfolio(
        id=record["id"],
        initial_cash=record["initial_cash"],
        cash_balance=record["cash_balance"],
        total_value=record["total_value"],
        daily_pnl=record["daily_pnl"],
        total_pnl=record["total_pnl"],
        peak_value=record["peak_value"],
        day_start_value=record["day_start_value"],
        trading_day=date.fromisoformat(trading_day) if trading_day else None,
        created_at=_parse_dt(record["created_at"]),
        last_updated=_parse_dt(record["last_updated"]),
    )


def position_to_record(position: Position) -> Record:
    return {
        "id": position.id,
        "portfolio_id": position.portfolio_id,
        "symbol": position.symbol,
        "quantity": position.quantity,
        "entry_price": position.entry_price,
        "current_price": position.current_price,
        "entry_date": _dt(position.entry_date),
        "stop_loss": position.stop_loss,
        "profit_targets": _targets_to_record(position.profit_targets),
        "unrealized_pnl": position.unrealized_pnl,
        "realized_pnl": position.realized_pnl,
        "sector": position.sector,
        "last_updated": _dt(position.last_updated),
        "targets_hit": position.targets_hit,
        "closed_at": _dt(position.closed_at),
    }


def position_from_record(record: Record) -> Position:
    return Position(
        id=record["id"],
        portfolio_id=record["portfolio_id"],
        symbol=record["symbol"],
        quantity=record["quantity"],
        entry_price=record["entry_price"],
        current_price=record["current_price"],
        entry_date=_parse_dt(record["entry_date"]),
        stop_loss=record["stop_loss"],
        profit_targets=_targets_from_record(record["profit_targets"]),
        unrealized_pnl=record["unrealized_pnl"],
        realized_pnl=record["realized_pnl"],
        sector=record["sector"],
        last_updated=_parse_dt(record["last_updated"]),
        targets_hit=record["targets_hit"],
        closed_at=_parse_dt(record["closed_at"]),
    )


def trade_to_record(trade: Trade) -> Record:
    return {
        "id": trade.id,
        "portfolio_id": trade.portfolio_id,
        "symbol": trade.symbol,
        "action": trade.action.value,
        "quantity": trade.quantity,
        "price": trade.price,
        "fees": trade.fees,
        "realized_pnl": trade.realized_pnl,
        "status": trade.status.value,
        "reasoning": trade.reasoning,
        "signal_id": trade.signal_id,
        "timestamp": _dt(trade.timestamp),
    }


def trade_from_record(record: Record) -> Trade:
    return Trade(
        id=record["id"],
        portfolio_id=record["portfolio_id"],
        symbol=record["symbol"],
        action=TradeAction(record["action"]),
        quantity=record["quantity"],
        price=record["price"],
        fees=record["fees"],
        realized_pnl=record["realized_pnl"],
        status=TradeStatus(record["status"]),
        reasoning=record["reasoning"],
        signal_id=record["signal_id"],
        timestamp=_parse_dt(record["timestamp"]),
    )


def snapshot_to_record(snapshot: PortfolioSnapshot) -> Record:
    return {
        "id": snapshot.id,
        "portfolio_id": snapshot.portfolio_id,
        "timestamp": _dt(snapshot.timestamp),
        "total_value": snapshot.total_value,
        "cash_balance": snapshot.cash_balance,
        "position_count": snapshot.position_count,
        "daily_pnl": snapshot.daily_pnl,
        "total_pnl": snapshot.total_pnl,
        "positions": [
            {
                "symbol": p.symbol,
                "quantity": p.quantity,
                "price": p.price,
                "value": p.value,
                "unrealized_pnl": p.unrealized_pnl,
                "percentage": p.percentage,
            }
            for p in snapshot.positions
        ],
    }


def snapshot_from_record(record: Record) -> PortfolioSnapshot:
    return PortfolioSnapshot(
        id=record["id"],
        portfolio_id=record["portfolio_id"],
        timestamp=_parse_dt(record["timestamp"]),
        total_value=record["total_value"],
        cash_balance=record["cash_balance"],
        position_count=record["position_count"],
        daily_pnl=record["daily_pnl"],
        total_pnl=record["total_pnl"],
        positions=tuple(PositionSnapshot(**p) for p in record["positions"]),
    )


def log_entry_to_record(entry: ExecutionLogEntry) -> Record:
    return {
        "id": entry.id,
        "kind": entry.kind.value,
        "schema_version": entry.schema_version,
        "component": entry.component,
        "action": entry.action,
        "details": dict(entry.details),
        "cycle_id": entry.cycle_id,
        "phase": entry.phase.value if entry.phase else None,
        "success": entry.success,
        "error": entry.error,
        "duration_ms": entry.duration_ms,
        "sequence": entry.sequence,
        "timestamp": _dt(entry.timestamp),
    }


def log_entry_from_record(record: Record) -> ExecutionLogEntry:
    return ExecutionLogEntry(
        id=record["id"],
        kind=LogKind(record["kind"]),
        schema_version=record["schema_version"],
        component=record["component"],
        action=record["action"],
        details=dict(record["details"]),
        cycle_id=record["cycle_id"],
        phase=CyclePhase(record["phase"]) if record["phase"] else None,
        success=record["success"],
        error=record["error"],
        duration_ms=record["duration_ms"],
        sequence=record["sequence"],
        timestamp=_parse_dt(record["timestamp"]),
    )


PORTFOLIO_CODEC = RecordCodec[Portfolio](
    entity="portfolio",
    key=lambda p: p.id,
    to_record=portfolio_to_record,
    from_record=portfolio_from_record,
)
POSITION_CODEC = RecordCodec[Position](
    entity="position",
    key=lambda p: p.id,
    to_record=position_to_record,
    from_record=position_from_record,
)
TRADE_CODEC = RecordCodec[Trade](
    entity="trade",
    key=lambda t: t.id,
    to_record=trade_to_record,
    from_record=trade_from_record,
)
SNAPSHOT_CODEC = RecordCodec[PortfolioSnapshot](
    entity="snapshot",
    key=lambda s: s.id,
    to_record=snapshot_to_record,
    from_record=snapshot_from_record,
)
LOG_ENTRY_CODEC = RecordCodec[ExecutionLogEntry](
    entity="execution_log",
    key=lambda e: e.id,
    to_record=log_entry_to_record,
    from_record=log_entry_from_record,
)

__all__ = [
    "LOG_ENTRY_CODEC",
    "PORTFOLIO_CODEC",
    "POSITION_CODEC",
    "Record",
    "RecordCodec",
    "SNAPSHOT_CODEC",
    "TRADE_CODEC",
]
