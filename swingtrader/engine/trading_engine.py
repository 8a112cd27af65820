"""
Long-running trading engine.

Owns the lifecycle (start, stop, pause, resume), the background scheduler
that runs trading cycles and price refreshes on their intervals, and the
status and health reporting built on top of cycle results.
"""

import asyncio
import time
from collections import deque
from datetime import datetime, timedelta

from loguru import logger

from swingtrader.config.settings import EngineConfig, EngineSettings, get_settings
from swingtrader.core.constants import ENGINE_ERROR_HISTORY, ENGINE_ERROR_WARNING_THRESHOLD
from swingtrader.core.enums import EnginePhase, HealthStatus
from swingtrader.core.exceptions.engine import (
    PersistenceError,
    SwingTraderError,
    TradingEngineError,
)
from swingtrader.core.interfaces.persistence import IPersistencePort
from swingtrader.core.interfaces.sources import IQuoteSource, ISignalSource
from swingtrader.core.models.cycle import (
    ComponentHealth,
    EngineStatus,
    SystemHealth,
    TradingCycleResult,
)
from swingtrader.core.models.execution_log import LogKind
from swingtrader.core.models.risk import RiskMetrics
from swingtrader.core.utils.clock import Clock, utc_now
from swingtrader.engine.exit_monitor import ExitCriteriaMonitor
from swingtrader.engine.mock_broker import MockBroker
from swingtrader.engine.orchestrator import TradingCycleOrchestrator
from swingtrader.engine.portfolio_manager import PortfolioManager
from swingtrader.infrastructure.logging.execution_log import ExecutionLogger

COMPONENT = "trading_engine"


class TradingEngine:
    """Scheduler and lifecycle wrapper around the cycle orchestrator."""

    def __init__(
        self,
        portfolio_manager: PortfolioManager,
        orchestrator: TradingCycleOrchestrator,
        persistence: IPersistencePort,
        config: EngineConfig | None = None,
        quote_source: IQuoteSource | None = None,
        clock: Clock = utc_now,
    ):
        self.portfolio_manager = portfolio_manager
        self.orchestrator = orchestrator
        self.config = config or EngineConfig()
        self.quote_source = quote_source or orchestrator.quote_source
        self._persistence = persistence
        self._clock = clock

        self._running = False
        self._paused = False
        self._phase = EnginePhase.IDLE
        self._started_at: float | None = None
        self._tasks: list[asyncio.Task] = []
        self._cycle_task: asyncio.Task[TradingCycleResult] | None = None

        self.cycles_completed = 0
        self.cycles_failed = 0
        self._total_cycle_time_ms = 0.0
        self._last_cycle_time: datetime | None = None
        self._errors: deque[str] = deque(maxlen=ENGINE_ERROR_HISTORY)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    async def start(self) -> None:
        """Initialize components and start the background scheduler.

        Raises:
            TradingEngineError: ALREADY_RUNNING, or START_FAILED if the
                portfolio could not be loaded
        """
        if self._running:
            raise TradingEngineError("Trading engine is already running", "ALREADY_RUNNING")

        logger.info("Starting trading engine")
        self._phase = EnginePhase.INITIALIZING
        try:
            await self.portfolio_manager.initialize()
        except SwingTraderError as e:
            self._phase = EnginePhase.ERROR
            self._errors.append(str(e))
            logger.error(f"Failed to start trading engine: {e}")
            raise TradingEngineError(f"Failed to start: {e}", "START_FAILED") from e

        self.orchestrator.exit_monitor.start_monitoring()
        self._running = True
        self._paused = False
        self._started_at = time.monotonic()
        self._phase = EnginePhase.IDLE

        if self.config.schedule_enabled:
            self._tasks = [
                asyncio.create_task(self._cycle_loop(), name="trading-cycle-scheduler"),
                asyncio.create_task(self._price_loop(), name="price-update-scheduler"),
            ]
        logger.info(
            f"Trading engine started (cycle every {self.config.cycle_interval_seconds:g}s, "
            f"prices every {self.config.price_update_interval_seconds:g}s, "
            f"scheduler {'on' if self.config.schedule_enabled else 'off'})"
        )

    async def stop(self) -> None:
        """Stop scheduling; a cycle already in flight runs to completion.

        Raises:
            TradingEngineError: NOT_RUNNING
        """
        if not self._running:
            raise TradingEngineError("Trading engine is not running", "NOT_RUNNING")

        logger.info("Stopping trading engine")
        self._running = False
        self._paused = False

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._cycle_task is not None and not self._cycle_task.done():
            logger.info("Waiting for in-flight trading cycle to finish")
            await asyncio.gather(self._cycle_task, return_exceptions=True)

        self.orchestrator.exit_monitor.stop_monitoring()
        self._phase = EnginePhase.IDLE
        logger.info(
            f"Trading engine stopped after {self.cycles_completed} completed cycles "
            f"({self._uptime_seconds():.0f}s uptime)"
        )

    async def pause(self) -> None:
        """Skip scheduled work until resumed."""
        if not self._running:
            raise TradingEngineError("Trading engine is not running", "NOT_RUNNING")
        if self._paused:
            raise TradingEngineError("Trading engine is already paused", "ALREADY_PAUSED")
        self._paused = True
        logger.info("Trading engine paused")

    async def resume(self) -> None:
        if not self._running:
            raise TradingEngineError("Trading engine is not running", "NOT_RUNNING")
        if not self._paused:
            raise TradingEngineError("Trading engine is not paused", "NOT_PAUSED")
        self._paused = False
        logger.info("Trading engine resumed")

    async def execute_trading_cycle(self) -> TradingCycleResult:
        """Run one trading cycle now.

        Raises:
            TradingEngineError: NOT_RUNNING, PAUSED, or CYCLE_IN_PROGRESS
        """
        if not self._running:
            raise TradingEngineError("Trading engine is not running", "NOT_RUNNING")
        if self._paused:
            raise TradingEngineError("Trading engine is paused", "PAUSED")
        if self.orchestrator.is_cycle_running:
            raise TradingEngineError("Trading cycle already in progress", "CYCLE_IN_PROGRESS")
        return await self._launch_cycle()

    async def _launch_cycle(self) -> TradingCycleResult:
        if self._cycle_task is not None and not self._cycle_task.done():
            raise TradingEngineError("Trading cycle already in progress", "CYCLE_IN_PROGRESS")
        # Cancelling the caller leaves the cycle task running
        self._cycle_task = asyncio.create_task(self._run_cycle(), name="trading-cycle")
        return await asyncio.shield(self._cycle_task)

    async def _run_cycle(self) -> TradingCycleResult:
        self._phase = EnginePhase.TRADING_CYCLE
        try:
            result = await self.orchestrator.run_cycle()
        except TradingEngineError:
            self._phase = EnginePhase.IDLE
            raise

        self._total_cycle_time_ms += result.execution_time_ms
        self._last_cycle_time = self._clock()
        if result.success:
            self.cycles_completed += 1
            self._phase = EnginePhase.IDLE
        else:
            self.cycles_failed += 1
            self._phase = EnginePhase.ERROR
            last = result.errors[-1] if result.errors else "unknown error"
            self._errors.append(f"Cycle {result.cycle_id[:8]} failed: {last}")
        return result

    async def update_prices(self) -> int:
        """Refresh prices of open positions from the quote source.

        Returns:
            Number of positions repriced
        """
        if self.quote_source is None:
            return 0
        symbols = [p.symbol for p in self.portfolio_manager.get_open_positions()]
        if not symbols:
            return 0

        start_time = time.perf_counter()
        quotes = await self.quote_source.get_quotes(symbols)
        updated = await self.portfolio_manager.update_position_prices(quotes)
        await self.orchestrator.execution_logger.record(
            LogKind.PRICE_UPDATE,
            COMPONENT,
            "update_prices",
            {"quotes": len(quotes), "updated": updated},
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        return updated

    async def _cycle_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.config.cycle_interval_seconds)
            if self._paused:
                logger.debug("Trading engine paused, skipping scheduled cycle")
                continue
            if self.orchestrator.is_cycle_running:
                logger.warning("Previous trading cycle still running, skipping scheduled cycle")
                continue
            try:
                await self._launch_cycle()
            except TradingEngineError as e:
                logger.warning(f"Scheduled cycle skipped: {e}")

    async def _price_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.config.price_update_interval_seconds)
            if self._paused or not self.portfolio_manager.is_initialized:
                continue
            in_cycle = self.orchestrator.is_cycle_running
            if not in_cycle:
                self._phase = EnginePhase.PRICE_UPDATE
            try:
                updated = await self.update_prices()
                logger.debug(f"Scheduled price update repriced {updated} positions")
            except SwingTraderError as e:
                self._errors.append(f"Price update failed: {e}")
                logger.error(f"Scheduled price update failed: {e}")
            finally:
                if not in_cycle and self._phase == EnginePhase.PRICE_UPDATE:
                    self._phase = EnginePhase.IDLE

    def get_status(self) -> EngineStatus:
        total = self.cycles_completed + self.cycles_failed
        average = self._total_cycle_time_ms / total if total else 0.0
        success_rate = self.cycles_completed / total * 100 if total else 100.0
        return EngineStatus(
            is_running=self._running,
            is_paused=self._paused,
            current_phase=self._phase,
            cycles_completed=self.cycles_completed,
            cycles_failed=self.cycles_failed,
            average_cycle_time_ms=average,
            success_rate=success_rate,
            uptime_seconds=self._uptime_seconds(),
            last_cycle_time=self._last_cycle_time,
            next_cycle_time=self._next_cycle_time(),
            last_error=self._errors[-1] if self._errors else None,
            errors=tuple(self._errors),
        )

    async def health_check(self) -> SystemHealth:
        """Check each component and roll the results up into one status."""
        components = {
            "trading_engine": self._engine_health(),
            "persistence": await self._persistence_health(),
            "portfolio": self._portfolio_health(),
            "market_data": self._market_data_health(),
        }
        statuses = [health.status for health in components.values()]
        if HealthStatus.CRITICAL in statuses:
            overall = HealthStatus.CRITICAL
        elif any(status.is_degraded for status in statuses):
            overall = HealthStatus.WARNING
        else:
            overall = HealthStatus.HEALTHY
        return SystemHealth(overall=overall, components=components, last_check=self._clock())

    def get_risk_metrics(self) -> RiskMetrics:
        return self.portfolio_manager.get_risk_metrics()

    def _engine_health(self) -> ComponentHealth:
        now = self._clock()
        if not self._running:
            return ComponentHealth(HealthStatus.OFFLINE, "Trading engine is not running", now)
        errors = len(self._errors)
        if errors > ENGINE_ERROR_WARNING_THRESHOLD:
            return ComponentHealth(HealthStatus.CRITICAL, f"Multiple errors detected ({errors})", now)
        if errors > 0:
            return ComponentHealth(HealthStatus.WARNING, f"Some errors detected ({errors})", now)
        return ComponentHealth(HealthStatus.HEALTHY, "Trading engine operating normally", now)

    async def _persistence_health(self) -> ComponentHealth:
        start_time = time.perf_counter()
        try:
            reachable = await self._persistence.ping()
        except (PersistenceError, OSError) as e:
            logger.error(f"Persistence health check failed: {e}")
            reachable = False
        elapsed = (time.perf_counter() - start_time) * 1000
        if not reachable:
            return ComponentHealth(
                HealthStatus.CRITICAL, "Persistence unreachable", self._clock(), elapsed
            )
        return ComponentHealth(HealthStatus.HEALTHY, "Persistence operational", self._clock(), elapsed)

    def _portfolio_health(self) -> ComponentHealth:
        now = self._clock()
        if not self.portfolio_manager.is_initialized:
            return ComponentHealth(HealthStatus.CRITICAL, "Portfolio not initialized", now)
        portfolio = self.portfolio_manager.get_portfolio()
        if not portfolio.invariant_holds():
            return ComponentHealth(
                HealthStatus.CRITICAL, "Portfolio value does not match cash plus positions", now
            )
        risk = self.portfolio_manager.get_risk_metrics()
        if risk.buying_halted:
            return ComponentHealth(HealthStatus.WARNING, "Circuit breaker active, buying halted", now)
        return ComponentHealth(HealthStatus.HEALTHY, "Portfolio consistent", now)

    def _market_data_health(self) -> ComponentHealth:
        now = self._clock()
        if self.quote_source is None:
            return ComponentHealth(HealthStatus.WARNING, "No quote source configured", now)
        return ComponentHealth(HealthStatus.HEALTHY, "Quote source configured", now)

    def _uptime_seconds(self) -> float:
        if self._started_at is None or not self._running:
            return 0.0
        return time.monotonic() - self._started_at

    def _next_cycle_time(self) -> datetime | None:
        if not self._running or not self.config.schedule_enabled:
            return None
        base = self._last_cycle_time or self._clock()
        return base + timedelta(seconds=self.config.cycle_interval_seconds)


def create_trading_engine(
    persistence: IPersistencePort,
    signal_source: ISignalSource,
    quote_source: IQuoteSource | None = None,
    settings: EngineSettings | None = None,
    clock: Clock = utc_now,
) -> TradingEngine:
    """Wire a trading engine from settings and its external ports."""
    settings = settings or get_settings()
    portfolio_manager = PortfolioManager(
        persistence,
        broker=MockBroker(settings.broker),
        settings=settings,
        clock=clock,
    )
    orchestrator = TradingCycleOrchestrator(
        portfolio_manager,
        signal_source,
        ExecutionLogger(persistence, clock=clock),
        exit_monitor=ExitCriteriaMonitor(settings.exit, clock=clock),
        quote_source=quote_source,
        clock=clock,
    )
    return TradingEngine(
        portfolio_manager,
        orchestrator,
        persistence,
        config=settings.engine,
        quote_source=quote_source,
        clock=clock,
    )
