"""
Execution log entries with versioned, typed detail maps.

Each log kind has a schema naming the detail keys it may carry and the
scalar types allowed for each. Entries are validated on construction so
the durable log stays queryable by key.

Schemas (version 1):

``cycle``
    required ``status: str``; optional ``trades_executed: int``,
    ``errors: int``, ``execution_time_ms: float``
``signal``
    required ``symbol: str``, ``action: str``; optional ``signal_id: str``,
    ``quantity: int``, ``price: float``, ``trade_id: str``, ``status: str``,
    ``exit_reason: str``, ``risk_level: str``
``exit_check``
    required ``positions_checked: int``, ``signals: int``; optional
    ``triggered: str`` (comma separated symbols)
``price_update``
    required ``quotes: int``, ``updated: int``
``portfolio_update``
    required ``total_value: float``, ``cash_balance: float``,
    ``position_count: int``; optional ``snapshot_id: str``,
    ``daily_pnl: float``, ``total_pnl: float``
"""

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from swingtrader.core.enums import CyclePhase
from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.utils.clock import utc_now

type DetailValue = str | int | float | bool | None


class LogKind(StrEnum):
    """Kinds of execution log entries."""

    CYCLE = "cycle"
    SIGNAL = "signal"
    EXIT_CHECK = "exit_check"
    PRICE_UPDATE = "price_update"
    PORTFOLIO_UPDATE = "portfolio_update"


@dataclass(frozen=True)
class LogSchema:
    """Allowed detail keys for one log kind at one version."""

    version: int
    required: Mapping[str, tuple[type, ...]]
    optional: Mapping[str, tuple[type, ...]] = field(default_factory=dict)

    def validate(self, kind: LogKind, details: Mapping[str, DetailValue]) -> None:
        """Check keys and value types.

        Raises:
            ValidationError: If a key is unknown, missing or has the wrong type
        """
        missing = [key for key in self.required if key not in details]
        if missing:
            raise ValidationError(f"{kind.value} log entry missing keys: {', '.join(missing)}")

        for key, value in details.items():
            allowed = self.required.get(key) or self.optional.get(key)
            if allowed is None:
                raise ValidationError(f"{kind.value} log entry has unknown key: {key}")
            if value is None:
                if key in self.required:
                    raise ValidationError(f"{kind.value} log entry key {key} cannot be None")
                continue
            # bool is an int subclass; only accept it where bool is declared
            if isinstance(value, bool) and bool not in allowed:
                raise ValidationError(f"{kind.value} log entry key {key} has type bool")
            if not isinstance(value, allowed):
                raise ValidationError(
                    f"{kind.value} log entry key {key} has type {type(value).__name__}"
                )


_NUMBER = (int, float)

LOG_SCHEMAS: dict[LogKind, LogSchema] = {
    LogKind.CYCLE: LogSchema(
        version=1,
        required={"status": (str,)},
        optional={"trades_executed": (int,), "errors": (int,), "execution_time_ms": _NUMBER},
    ),
    LogKind.SIGNAL: LogSchema(
        version=1,
        required={"symbol": (str,), "action": (str,)},
        optional={
            "signal_id": (str,),
            "quantity": (int,),
            "price": _NUMBER,
            "trade_id": (str,),
            "status": (str,),
            "exit_reason": (str,),
            "risk_level": (str,),
        },
    ),
    LogKind.EXIT_CHECK: LogSchema(
        version=1,
        required={"positions_checked": (int,), "signals": (int,)},
        optional={"triggered": (str,)},
    ),
    LogKind.PRICE_UPDATE: LogSchema(
        version=1,
        required={"quotes": (int,), "updated": (int,)},
    ),
    LogKind.PORTFOLIO_UPDATE: LogSchema(
        version=1,
        required={"total_value": _NUMBER, "cash_balance": _NUMBER, "position_count": (int,)},
        optional={"snapshot_id": (str,), "daily_pnl": _NUMBER, "total_pnl": _NUMBER},
    ),
}


@dataclass(frozen=True)
class ExecutionLogEntry:
    """One structured audit entry written by the engine."""

    kind: LogKind
    component: str
    action: str
    details: Mapping[str, DetailValue] = field(default_factory=dict)
    cycle_id: str | None = None
    phase: CyclePhase | None = None
    success: bool = True
    error: str | None = None
    duration_ms: float | None = None
    sequence: int = 0
    schema_version: int = 0
    timestamp: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        schema = LOG_SCHEMAS[self.kind]
        if self.schema_version == 0:
            object.__setattr__(self, "schema_version", schema.version)
        elif self.schema_version != schema.version:
            raise ValidationError(
                f"Unsupported {self.kind.value} schema version {self.schema_version}"
            )
        object.__setattr__(self, "details", dict(self.details))
        schema.validate(self.kind, self.details)
