"""
Trading cycle orchestrator.

Runs one trading cycle as a strict pipeline:

    STARTING -> BUY_SIGNALS -> SELL_SIGNALS -> EXIT_CRITERIA
             -> PORTFOLIO_UPDATE -> COMPLETED

Any unrecoverable error moves the cycle to FAILED. Failed trades are
recorded against their phase and never abort the cycle. Every step is
written to the execution log so phase ordering can be audited afterwards.
"""

import asyncio
import time
import uuid
from collections.abc import Awaitable, Sequence

from loguru import logger

from swingtrader.core.enums import CyclePhase, ExitReason, TradeAction
from swingtrader.core.exceptions.engine import (
    InitializationError,
    SwingTraderError,
    TradingEngineError,
)
from swingtrader.core.interfaces.sources import IQuoteSource, ISignalSource
from swingtrader.core.models.cycle import TradingCycleResult
from swingtrader.core.models.execution_log import DetailValue, LogKind
from swingtrader.core.models.signal import TradingSignal
from swingtrader.core.models.trade import TradeResult
from swingtrader.core.utils.clock import Clock, utc_now
from swingtrader.engine.exit_monitor import ExitCriteriaMonitor
from swingtrader.engine.portfolio_manager import PortfolioManager
from swingtrader.infrastructure.logging.execution_log import ExecutionLogger


COMPONENT = "orchestrator"

_SIGNAL_ACTIONS = {
    CyclePhase.BUY_SIGNALS: "process_buy_signal",
    CyclePhase.SELL_SIGNALS: "process_sell_signal",
    CyclePhase.EXIT_CRITERIA: "process_exit_signal",
}


class TradingCycleOrchestrator:
    """Sequences the phases of a single trading cycle.

    Only one cycle runs at a time. The cycle lock is separate from the
    portfolio manager's mutation lock, so price refreshes can still
    interleave between the trades of a running cycle.
    """

    def __init__(
        self,
        portfolio_manager: PortfolioManager,
        signal_source: ISignalSource,
        execution_logger: ExecutionLogger,
        exit_monitor: ExitCriteriaMonitor | None = None,
        quote_source: IQuoteSource | None = None,
        clock: Clock = utc_now,
    ):
        self.portfolio_manager = portfolio_manager
        self.signal_source = signal_source
        self.execution_logger = execution_logger
        self.exit_monitor = exit_monitor or ExitCriteriaMonitor(clock=clock)
        self.quote_source = quote_source
        self._clock = clock
        self._cycle_lock = asyncio.Lock()
        self._current_phase: CyclePhase | None = None

    @property
    def is_cycle_running(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def current_phase(self) -> CyclePhase | None:
        """Phase of the cycle in flight, None when idle."""
        return self._current_phase

    async def run_cycle(self) -> TradingCycleResult:
        """Run one full trading cycle.

        Returns:
            TradingCycleResult with per-phase counts, executed trades and errors

        Raises:
            TradingEngineError: If another cycle is already in flight
        """
        if self._cycle_lock.locked():
            raise TradingEngineError("Trading cycle already in progress", "CYCLE_IN_PROGRESS")

        async with self._cycle_lock:
            try:
                return await self._run_locked()
            finally:
                self._current_phase = None

    async def _run_locked(self) -> TradingCycleResult:
        start_time = time.perf_counter()
        result = TradingCycleResult(cycle_id=str(uuid.uuid4()), started_at=self._clock())
        logger.info(f"Starting trading cycle {result.cycle_id}")

        phase = CyclePhase.STARTING
        try:
            self._enter(result, phase)
            await self._start(result)

            phase = CyclePhase.BUY_SIGNALS
            self._enter(result, phase)
            await self._process_buy_signals(result)

            phase = CyclePhase.SELL_SIGNALS
            self._enter(result, phase)
            await self._process_sell_signals(result)

            phase = CyclePhase.EXIT_CRITERIA
            self._enter(result, phase)
            await self._process_exit_criteria(result)

            phase = CyclePhase.PORTFOLIO_UPDATE
            self._enter(result, phase)
            await self._update_portfolio(result)
        except Exception as e:
            return await self._fail(result, phase, e, start_time)

        result.final_phase = CyclePhase.COMPLETED
        result.execution_time_ms = _elapsed_ms(start_time)
        await self._log(
            result,
            LogKind.CYCLE,
            "complete_cycle",
            {
                "status": result.final_phase.value,
                "trades_executed": result.trade_count,
                "errors": len(result.errors),
                "execution_time_ms": result.execution_time_ms,
            },
            phase=CyclePhase.COMPLETED,
            duration_ms=result.execution_time_ms,
        )
        logger.info(
            f"Trading cycle {result.cycle_id} completed: "
            f"buys={result.buy_signals_processed}, sells={result.sell_signals_processed}, "
            f"exits={result.exit_signals_generated}, trades={result.trade_count}, "
            f"errors={len(result.errors)}, time={result.execution_time_ms:.1f}ms"
        )
        return result

    def _enter(self, result: TradingCycleResult, phase: CyclePhase) -> None:
        self._current_phase = phase
        result.final_phase = phase
        logger.debug(f"Cycle {result.cycle_id[:8]} entering {phase}")

    async def _start(self, result: TradingCycleResult) -> None:
        """Check the portfolio is loaded and refresh prices of held symbols."""
        if not self.portfolio_manager.is_initialized:
            raise InitializationError("Portfolio manager is not initialized")

        await self._log(result, LogKind.CYCLE, "start_cycle", {"status": "started"})

        if self.quote_source is None:
            return
        symbols = [p.symbol for p in self.portfolio_manager.get_open_positions()]
        if not symbols:
            return
        step_start = time.perf_counter()
        quotes = await self.quote_source.get_quotes(symbols)
        updated = await self.portfolio_manager.update_position_prices(quotes)
        await self._log(
            result,
            LogKind.PRICE_UPDATE,
            "refresh_prices",
            {"quotes": len(quotes), "updated": updated},
            duration_ms=_elapsed_ms(step_start),
        )

    async def _process_buy_signals(self, result: TradingCycleResult) -> None:
        phase = CyclePhase.BUY_SIGNALS
        signals = await self._fetch_signals(result, phase, self.signal_source.get_buy_signals())
        result.buy_signals_processed = await self._execute_signals(result, phase, signals)

    async def _process_sell_signals(self, result: TradingCycleResult) -> None:
        phase = CyclePhase.SELL_SIGNALS
        positions = self.portfolio_manager.get_open_positions()
        signals = await self._fetch_signals(
            result, phase, self.signal_source.get_sell_signals(positions)
        )
        result.sell_signals_processed = await self._execute_signals(result, phase, signals)

    async def _process_exit_criteria(self, result: TradingCycleResult) -> None:
        """Evaluate exits on post-sell positions and execute them, stops first."""
        phase = CyclePhase.EXIT_CRITERIA
        step_start = time.perf_counter()
        check = self.exit_monitor.check_positions(self.portfolio_manager.get_open_positions())
        result.exit_criteria_checked = check.positions_checked
        result.exit_signals_generated = len(check.exit_signals)
        for error in check.errors:
            result.record_error(phase, error)

        await self._log(
            result,
            LogKind.EXIT_CHECK,
            "check_exit_criteria",
            {
                "positions_checked": check.positions_checked,
                "signals": len(check.exit_signals),
                "triggered": ",".join(check.criteria_triggered) or None,
            },
            success=not check.errors,
            error="; ".join(check.errors) or None,
            duration_ms=_elapsed_ms(step_start),
        )

        signals = sorted(check.exit_signals, key=_exit_priority)
        await self._execute_signals(result, phase, signals)

    async def _update_portfolio(self, result: TradingCycleResult) -> None:
        """Refresh metrics and persist the cycle-boundary snapshot."""
        step_start = time.perf_counter()
        summary = result.phase_summaries[CyclePhase.PORTFOLIO_UPDATE]
        summary.attempted += 1

        metrics = self.portfolio_manager.update_portfolio_metrics()
        snapshot = await self.portfolio_manager.take_snapshot()
        result.snapshot_id = snapshot.id
        summary.executed += 1

        await self._log(
            result,
            LogKind.PORTFOLIO_UPDATE,
            "update_portfolio",
            {
                "total_value": metrics.total_value,
                "cash_balance": metrics.cash_balance,
                "position_count": metrics.position_count,
                "snapshot_id": snapshot.id,
                "daily_pnl": metrics.daily_pnl,
                "total_pnl": metrics.total_pnl,
            },
            duration_ms=_elapsed_ms(step_start),
        )
        logger.info(
            f"Portfolio updated: value={metrics.total_value:.2f}, cash={metrics.cash_balance:.2f}, "
            f"positions={metrics.position_count}, daily_pnl={metrics.daily_pnl:.2f}"
        )

    async def _fetch_signals(
        self,
        result: TradingCycleResult,
        phase: CyclePhase,
        pending: Awaitable[list[TradingSignal]],
    ) -> list[TradingSignal]:
        """Await a signal source call; a source failure is a phase error, not a cycle failure."""
        try:
            return list(await pending)
        except SwingTraderError as e:
            result.record_error(phase, f"Signal source failed: {e}")
            logger.error(f"Signal source failed during {phase}: {e}")
            return []

    async def _execute_signals(
        self, result: TradingCycleResult, phase: CyclePhase, signals: Sequence[TradingSignal]
    ) -> int:
        """Execute signals one by one; returns the number attempted."""
        summary = result.phase_summaries[phase]
        for signal in signals:
            summary.attempted += 1
            step_start = time.perf_counter()
            try:
                trade_result = await self.portfolio_manager.execute_trade_order(signal)
            except SwingTraderError as e:
                summary.failed += 1
                result.record_error(phase, f"{signal.symbol}: {e}")
                logger.error(f"Error processing {signal.action} signal for {signal.symbol}: {e}")
                await self._log_signal(result, phase, signal, None, str(e), _elapsed_ms(step_start))
                continue
            except Exception as e:
                message = str(e) or type(e).__name__
                summary.failed += 1
                result.record_error(phase, f"{signal.symbol}: {message}")
                logger.opt(exception=e).error(
                    f"Unexpected error processing {signal.action} signal "
                    f"for {signal.symbol}: {message}"
                )
                await self._log_signal(
                    result, phase, signal, None, message, _elapsed_ms(step_start)
                )
                continue

            if trade_result.success and trade_result.trade is not None:
                summary.executed += 1
                result.trades_executed.append(trade_result.trade)
            else:
                summary.failed += 1
                result.record_error(phase, f"{signal.symbol}: {trade_result.error}")
            await self._log_signal(
                result, phase, signal, trade_result, trade_result.error, _elapsed_ms(step_start)
            )
        return len(signals)

    async def _log_signal(
        self,
        result: TradingCycleResult,
        phase: CyclePhase,
        signal: TradingSignal,
        trade_result: TradeResult | None,
        error: str | None,
        duration_ms: float,
    ) -> None:
        action = TradeAction.parse(signal.action)
        details: dict[str, DetailValue] = {
            "symbol": signal.symbol,
            "action": action.value if action else str(signal.action),
            "signal_id": signal.id,
            "exit_reason": signal.exit_reason.value if signal.exit_reason else None,
        }
        if trade_result is not None and trade_result.validation is not None:
            details["risk_level"] = trade_result.validation.risk_level.value
        trade = trade_result.trade if trade_result is not None else None
        if trade is not None:
            details.update(
                trade_id=trade.id,
                quantity=trade.quantity,
                price=trade.price,
                status=trade.status.value,
            )
        await self._log(
            result,
            LogKind.SIGNAL,
            _SIGNAL_ACTIONS[phase],
            details,
            success=trade_result is not None and trade_result.success,
            error=error,
            duration_ms=duration_ms,
        )

    async def _fail(
        self, result: TradingCycleResult, phase: CyclePhase, error: Exception, start_time: float
    ) -> TradingCycleResult:
        message = str(error) or type(error).__name__
        result.record_error(phase, message)
        result.final_phase = CyclePhase.FAILED
        result.execution_time_ms = _elapsed_ms(start_time)
        logger.opt(exception=error).error(
            f"Trading cycle {result.cycle_id} failed during {phase}: {message}"
        )
        await self._log(
            result,
            LogKind.CYCLE,
            "fail_cycle",
            {
                "status": CyclePhase.FAILED.value,
                "trades_executed": result.trade_count,
                "errors": len(result.errors),
                "execution_time_ms": result.execution_time_ms,
            },
            phase=phase,
            success=False,
            error=message,
            duration_ms=result.execution_time_ms,
        )
        return result

    async def _log(
        self,
        result: TradingCycleResult,
        kind: LogKind,
        action: str,
        details: dict[str, DetailValue],
        phase: CyclePhase | None = None,
        success: bool = True,
        error: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        await self.execution_logger.record(
            kind,
            COMPONENT,
            action,
            details,
            cycle_id=result.cycle_id,
            phase=phase or result.final_phase,
            success=success,
            error=error,
            duration_ms=duration_ms,
        )


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def _exit_priority(signal: TradingSignal) -> int:
    reason = signal.exit_reason or ExitReason.PROFIT_TARGET
    return reason.priority
