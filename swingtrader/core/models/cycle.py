"""
Trading cycle results and engine status models.
"""

from dataclasses import dataclass, field
from datetime import datetime

from swingtrader.core.enums import CyclePhase, EnginePhase, HealthStatus
from swingtrader.core.models.trade import Trade
from swingtrader.core.types.financial import ZERO


@dataclass
class PhaseSummary:
    """Counters for one cycle phase."""

    attempted: int = 0
    executed: int = 0
    failed: int = 0


@dataclass
class TradingCycleResult:
    """Externally observable outcome of one trading cycle.

    Filled in by the orchestrator while the cycle runs; treat as read-only
    once returned.
    """

    cycle_id: str
    started_at: datetime
    final_phase: CyclePhase = CyclePhase.STARTING
    phase_summaries: dict[CyclePhase, PhaseSummary] = field(
        default_factory=lambda: {phase: PhaseSummary() for phase in CyclePhase.pipeline()}
    )
    buy_signals_processed: int = 0
    sell_signals_processed: int = 0
    exit_criteria_checked: int = 0
    exit_signals_generated: int = 0
    trades_executed: list[Trade] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    phase_errors: dict[CyclePhase, list[str]] = field(default_factory=dict)
    execution_time_ms: float = ZERO
    snapshot_id: str | None = None

    @property
    def success(self) -> bool:
        """Partial success: the portfolio update phase completed."""
        return self.final_phase == CyclePhase.COMPLETED

    @property
    def trade_count(self) -> int:
        return len(self.trades_executed)

    def record_error(self, phase: CyclePhase, message: str) -> None:
        self.errors.append(f"{phase.value}: {message}")
        self.phase_errors.setdefault(phase, []).append(message)


@dataclass(frozen=True)
class EngineStatus:
    is_running: bool
    is_paused: bool
    current_phase: EnginePhase
    cycles_completed: int
    cycles_failed: int
    average_cycle_time_ms: float
    success_rate: float
    uptime_seconds: float
    last_cycle_time: datetime | None = None
    next_cycle_time: datetime | None = None
    last_error: str | None = None
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ComponentHealth:
    status: HealthStatus
    message: str
    last_check: datetime
    response_time_ms: float | None = None


@dataclass(frozen=True)
class SystemHealth:
    overall: HealthStatus
    components: dict[str, ComponentHealth]
    last_check: datetime
