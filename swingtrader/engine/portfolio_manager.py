"""
Portfolio manager.

Owns the authoritative in-memory portfolio. Every trade goes through the
same pipeline: structural validation, risk validation and sizing, broker
execution, in-memory application, and persistence. The last three form a
single unit: if persistence fails the in-memory state is restored from a
checkpoint and already-applied writes are compensated before the error is
raised.

Concurrency:
    All mutations (trades and price refreshes) run under one asyncio.Lock,
    so the portfolio invariant holds at every await point visible to other
    tasks.
"""

import asyncio
import copy
import time
from collections.abc import Iterable, Mapping
from datetime import timedelta

from loguru import logger

from swingtrader.config.settings import EngineSettings, RiskLimits, get_settings
from swingtrader.core.constants import DEFAULT_SNAPSHOT_DAYS
from swingtrader.core.enums import TradeAction, TradeStatus
from swingtrader.core.exceptions.engine import (
    InitializationError,
    PersistenceError,
    PositionNotFoundError,
    RollbackError,
    ValidationError,
)
from swingtrader.core.interfaces.persistence import IPersistencePort
from swingtrader.core.models.broker import BrokerExecution, BrokerOrder
from swingtrader.core.models.market import Quote
from swingtrader.core.models.metrics import PerformanceStats, PortfolioMetrics
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.position import Position
from swingtrader.core.models.risk import RiskMetrics, RiskValidation
from swingtrader.core.models.signal import TradingSignal
from swingtrader.core.models.snapshot import PortfolioSnapshot
from swingtrader.core.models.trade import Trade, TradeResult
from swingtrader.core.types.financial import ZERO, fraction_of, shares_for_budget
from swingtrader.core.types.result import Result
from swingtrader.core.utils.clock import Clock, utc_now
from swingtrader.core.utils.decorators import log_operation, validate_inputs
from swingtrader.engine.compensation import PersistStep, commit_steps
from swingtrader.engine.mock_broker import MockBroker
from swingtrader.engine.performance import PerformanceCalculator
from swingtrader.engine.portfolio_helpers import FillApplier, SignalValidator
from swingtrader.engine.portfolio_metrics import PortfolioMetricsCalculator
from swingtrader.engine.risk_manager import RiskManager

NOT_INITIALIZED = "Portfolio manager is not initialized"


class PortfolioManager:
    """Maintains portfolio and position state and executes trades."""

    def __init__(
        self,
        persistence: IPersistencePort,
        broker: MockBroker | None = None,
        risk_manager: RiskManager | None = None,
        settings: EngineSettings | None = None,
        clock: Clock = utc_now,
    ):
        settings = settings or get_settings()
        self._persistence = persistence
        self._broker = broker or MockBroker(settings.broker)
        self._risk_manager = risk_manager or RiskManager()
        self._limits = settings.risk
        self._config = settings.portfolio
        self._clock = clock
        self._metrics = PortfolioMetricsCalculator(settings.risk.sector_map)
        self._performance = PerformanceCalculator()
        self._lock = asyncio.Lock()
        self._portfolio: Portfolio | None = None

    @property
    def is_initialized(self) -> bool:
        return self._portfolio is not None

    @property
    def limits(self) -> RiskLimits:
        return self._limits

    @property
    def portfolio_id(self) -> str:
        return self._config.portfolio_id

    @log_operation
    async def initialize(self) -> Portfolio:
        """Load the portfolio from persistence, creating a default one if missing.

        Returns:
            Copy of the loaded portfolio

        Raises:
            InitializationError: If the persistence port cannot be reached
        """
        async with self._lock:
            self._portfolio = None
            now = self._clock()
            try:
                portfolio = await self._persistence.get_portfolio(self.portfolio_id)
                if portfolio is None:
                    portfolio = Portfolio.create(self.portfolio_id, self._config.initial_cash, now)
                    await self._persistence.create_portfolio(portfolio)
                    logger.info(
                        f"Created portfolio {portfolio.id} with {self._config.initial_cash:.2f} cash"
                    )
                positions = await self._persistence.get_positions(self.portfolio_id)
            except (PersistenceError, OSError) as e:
                logger.error(f"Portfolio initialization failed: {e}")
                raise InitializationError(f"Failed to initialize portfolio manager: {e}") from e

            for position in positions:
                portfolio.add_position(position)
            portfolio.recalculate(now)
            self._portfolio = portfolio

            logger.info(
                f"Portfolio {portfolio.id} loaded: value={portfolio.total_value:.2f}, "
                f"cash={portfolio.cash_balance:.2f}, open positions={len(portfolio.open_positions())}"
            )
            return copy.deepcopy(portfolio)

    def _require_portfolio(self) -> Portfolio:
        if self._portfolio is None:
            raise InitializationError(NOT_INITIALIZED)
        return self._portfolio

    def _current_portfolio(self) -> Portfolio:
        """Loaded portfolio with its daily baseline moved to today."""
        portfolio = self._require_portfolio()
        if portfolio.roll_trading_day(self._clock()):
            logger.info(f"New trading day {portfolio.trading_day}, daily PnL baseline reset")
        return portfolio

    def get_portfolio(self) -> Portfolio:
        """Copy of the current portfolio, positions included."""
        return copy.deepcopy(self._require_portfolio())

    def get_current_positions(self) -> list[Position]:
        """All positions of the session, open and closed."""
        return copy.deepcopy(self._require_portfolio().positions)

    def get_open_positions(self) -> list[Position]:
        return copy.deepcopy(self._require_portfolio().open_positions())

    @validate_inputs
    def get_position_by_symbol(self, symbol: str) -> Position | None:
        """Open position for a symbol, or None."""
        position = self._require_portfolio().find_open(symbol)
        return copy.deepcopy(position) if position else None

    def calculate_position_size(self, signal: TradingSignal) -> int:
        """Share count a signal would trade right now, without executing it.

        Returns:
            Tradeable whole shares, 0 if the signal would be rejected
        """
        portfolio = self._current_portfolio()
        try:
            symbol, action = SignalValidator.validate_structure(signal)
        except ValidationError:
            return 0

        validation = self._risk_manager.validate(signal, portfolio, self._limits)
        if not validation.approved or validation.adjusted_size is None:
            return 0
        if action.is_sell:
            return validation.adjusted_size
        return self._cap_for_execution_costs(symbol, signal, validation.adjusted_size, portfolio)

    def _cap_for_execution_costs(
        self, symbol: str, signal: TradingSignal, size: int, portfolio: Portfolio
    ) -> int:
        """Shrink a buy so the worst-case slipped fill plus fee stays within limits."""
        worst_price = self._broker.worst_case_fill_price(signal.entry_price)
        fee = self._broker.config.fee_per_trade
        held_position = portfolio.find_open(symbol)
        held = held_position.quantity if held_position else 0

        cash_cap = shares_for_budget(portfolio.cash_balance - fee, worst_price)
        max_position_value = fraction_of(
            self._limits.max_position_percentage, portfolio.total_value - fee
        )
        position_cap = max(0, shares_for_budget(max_position_value, worst_price) - held)
        return min(size, cash_cap, position_cap)

    @log_operation
    async def execute_trade_order(self, signal: TradingSignal) -> TradeResult:
        """Validate, size, execute and record a trade.

        Validation failures, risk rejections and broker rejections come back
        as failed TradeResults. Only broker attempts leave a Trade record.

        Args:
            signal: Signal to execute

        Returns:
            TradeResult describing the outcome

        Raises:
            InitializationError: If the manager is not initialized
            PersistenceError: If recording the outcome failed (state rolled back)
        """
        start_time = time.perf_counter()
        self._require_portfolio()

        try:
            symbol, action = SignalValidator.validate_structure(signal)
        except ValidationError as e:
            logger.warning(f"Invalid signal {signal.id}: {e}")
            return TradeResult.failed(f"Invalid signal: {e}", _elapsed_ms(start_time))

        async with self._lock:
            return await self._execute_locked(signal, symbol, action, start_time)

    async def _execute_locked(
        self, signal: TradingSignal, symbol: str, action: TradeAction, start_time: float
    ) -> TradeResult:
        portfolio = self._current_portfolio()

        validation = self._risk_manager.validate(signal, portfolio, self._limits)
        if not validation.approved or validation.adjusted_size is None:
            logger.warning(f"Risk rejected {action} {symbol}: {validation.reason}")
            return TradeResult.failed(
                validation.reason, _elapsed_ms(start_time), validation=validation
            )

        size = validation.adjusted_size
        price = signal.entry_price
        if action.is_sell:
            position = portfolio.find_open(symbol)
            if position is not None and (not price or price <= ZERO):
                price = position.current_price
        else:
            size = self._cap_for_execution_costs(symbol, signal, size, portfolio)
            if size <= 0:
                reason = "Trade size rounds to zero after execution costs (slippage and fees)"
                logger.warning(f"Risk rejected {action} {symbol}: {reason}")
                return TradeResult.failed(reason, _elapsed_ms(start_time), validation=validation)

        if size != signal.recommended_size:
            logger.info(f"{action} {symbol} sized {signal.recommended_size} -> {size}")

        order = BrokerOrder(symbol=symbol, action=action, quantity=size, price=price)
        execution = await self._broker.execute(order)

        if execution.failed:
            trade = self._build_trade(signal, order, execution, TradeStatus.FAILED, ZERO)
            await self._record_failed_trade(trade)
            return TradeResult.failed(
                execution.error_message or "Broker execution failed",
                _elapsed_ms(start_time),
                trade=trade,
                validation=validation,
            )

        trade = await self._apply_fill(signal, order, execution)
        logger.info(
            f"Executed {action} {order.quantity} {symbol} @ {execution.fill_price:.4f} "
            f"(fee {execution.fee:.2f}, cash {self._require_portfolio().cash_balance:.2f})"
        )
        return TradeResult(
            success=True,
            trade=trade,
            execution_time_ms=_elapsed_ms(start_time),
            validation=validation,
        )

    async def _apply_fill(
        self, signal: TradingSignal, order: BrokerOrder, execution: BrokerExecution
    ) -> Trade:
        """Apply a fill in memory and persist it as one unit."""
        portfolio = self._require_portfolio()
        checkpoint = copy.deepcopy(portfolio)
        now = self._clock()

        if order.action.is_buy:
            sector = self._limits.sector_for(order.symbol, signal.sector)
            position, created = FillApplier.apply_buy(
                portfolio,
                order.symbol,
                order.quantity,
                execution.fill_price,
                execution.fee,
                signal,
                sector,
                now,
            )
            realized = ZERO
        else:
            position = portfolio.find_open(order.symbol)
            if position is None:
                raise PositionNotFoundError(order.symbol)
            realized = FillApplier.apply_sell(
                portfolio, position, order.quantity, execution.fill_price, execution.fee, signal, now
            )
            created = False

        portfolio.recalculate(now)
        trade = self._build_trade(signal, order, execution, TradeStatus.EXECUTED, realized)

        prior_position = next((p for p in checkpoint.positions if p.id == position.id), None)
        steps = self._fill_steps(position, created, prior_position, portfolio, checkpoint, trade)
        outcome = await self._commit_or_restore(checkpoint, steps)
        if not outcome.ok:
            raise PersistenceError("execute_trade_order", outcome.error or "unknown error")
        return trade

    def _fill_steps(
        self,
        position: Position,
        created: bool,
        prior_position: Position | None,
        portfolio: Portfolio,
        checkpoint: Portfolio,
        trade: Trade,
    ) -> list[PersistStep]:
        position_record = copy.deepcopy(position)
        portfolio_record = copy.deepcopy(portfolio)
        now = self._clock()
        if created:
            position_step = PersistStep(
                operation="create_position",
                apply=lambda: self._persistence.create_position(position_record),
                compensate=lambda: self._persistence.update_position(
                    FillApplier.voided(position_record, now)
                ),
            )
        else:
            position_step = PersistStep(
                operation="update_position",
                apply=lambda: self._persistence.update_position(position_record),
                compensate=lambda: self._persistence.update_position(prior_position),
            )
        return [
            position_step,
            PersistStep(
                operation="update_portfolio",
                apply=lambda: self._persistence.update_portfolio(portfolio_record),
                compensate=lambda: self._persistence.update_portfolio(checkpoint),
            ),
            PersistStep(operation="create_trade", apply=lambda: self._persistence.create_trade(trade)),
        ]

    async def _commit_or_restore(
        self, checkpoint: Portfolio, steps: list[PersistStep]
    ) -> Result[None]:
        """Commit steps; on failure restore the in-memory checkpoint."""
        try:
            outcome = await commit_steps(steps)
        except RollbackError:
            self._portfolio = checkpoint
            logger.error("Rolled back in-memory portfolio after failed compensation")
            raise
        if not outcome.ok:
            self._portfolio = checkpoint
            logger.error(f"Rolled back in-memory portfolio: {outcome.error}")
        return outcome

    async def _record_failed_trade(self, trade: Trade) -> None:
        try:
            await self._persistence.create_trade(trade)
        except PersistenceError as e:
            logger.error(f"Failed to record failed trade {trade.id}: {e}")
            raise
        logger.warning(f"Recorded failed {trade.action} {trade.quantity} {trade.symbol}")

    def _build_trade(
        self,
        signal: TradingSignal,
        order: BrokerOrder,
        execution: BrokerExecution,
        status: TradeStatus,
        realized_pnl: float,
    ) -> Trade:
        filled = status == TradeStatus.EXECUTED
        return Trade(
            symbol=order.symbol,
            action=order.action,
            quantity=order.quantity,
            price=execution.fill_price if filled else order.price,
            status=status,
            portfolio_id=self.portfolio_id,
            fees=execution.fee if filled else ZERO,
            realized_pnl=realized_pnl,
            reasoning=signal.reasoning,
            signal_id=signal.id,
            timestamp=self._clock(),
        )

    @log_operation
    async def update_position_prices(self, quotes: Iterable[Quote] | Mapping[str, float]) -> int:
        """Reprice open positions from quotes.

        Quotes for symbols without an open position are ignored.

        Args:
            quotes: Quote objects or a symbol-to-price mapping

        Returns:
            Number of positions repriced

        Raises:
            PersistenceError: If the repriced state could not be stored (state rolled back)
        """
        prices = _price_map(quotes)
        async with self._lock:
            portfolio = self._require_portfolio()
            checkpoint = copy.deepcopy(portfolio)
            now = self._clock()

            repriced: list[Position] = []
            for position in portfolio.open_positions():
                price = prices.get(position.symbol)
                if price is None:
                    continue
                if price <= ZERO:
                    logger.warning(f"Ignoring non-positive quote {price} for {position.symbol}")
                    continue
                position.mark(price, now)
                repriced.append(position)
                logger.debug(f"Repriced {position.symbol} to {price:.4f}")

            if not repriced:
                return 0

            portfolio.recalculate(now)
            steps = [self._position_update_step(p, checkpoint) for p in repriced]
            portfolio_record = copy.deepcopy(portfolio)
            steps.append(
                PersistStep(
                    operation="update_portfolio",
                    apply=lambda: self._persistence.update_portfolio(portfolio_record),
                    compensate=lambda: self._persistence.update_portfolio(checkpoint),
                )
            )
            outcome = await self._commit_or_restore(checkpoint, steps)
            if not outcome.ok:
                raise PersistenceError("update_position_prices", outcome.error or "unknown error")
            return len(repriced)

    def _position_update_step(self, position: Position, checkpoint: Portfolio) -> PersistStep:
        record = copy.deepcopy(position)
        prior = next(p for p in checkpoint.positions if p.id == position.id)
        return PersistStep(
            operation="update_position",
            apply=lambda: self._persistence.update_position(record),
            compensate=lambda: self._persistence.update_position(prior),
        )

    def update_portfolio_metrics(self) -> PortfolioMetrics:
        """Recompute derived metrics from current state without mutating it."""
        return self._metrics.calculate(self._require_portfolio())

    def get_risk_metrics(self) -> RiskMetrics:
        return self._risk_manager.assess_portfolio(self._current_portfolio(), self._limits)

    def preview_risk(self, signal: TradingSignal) -> RiskValidation:
        """Risk verdict for a signal against current state."""
        return self._risk_manager.validate(signal, self._current_portfolio(), self._limits)

    async def get_performance_stats(self) -> PerformanceStats:
        """Aggregate statistics over the full trade and snapshot history."""
        portfolio = self._require_portfolio()
        trades = await self._persistence.get_trades(status=TradeStatus.EXECUTED)
        trades = [trade for trade in trades if trade.portfolio_id == portfolio.id]
        snapshots = await self._persistence.get_snapshots(portfolio.id)
        return self._performance.calculate(
            trades,
            snapshots,
            net_profit=portfolio.total_pnl,
            current_value=portfolio.total_value,
            now=self._clock(),
        )

    async def take_snapshot(self) -> PortfolioSnapshot:
        """Persist a point-in-time snapshot of the portfolio.

        Raises:
            PersistenceError: If the snapshot could not be saved
        """
        async with self._lock:
            snapshot = PortfolioSnapshot.capture(self._require_portfolio(), self._clock())
        await self._persistence.save_snapshot(snapshot)
        logger.debug(
            f"Saved snapshot {snapshot.id}: value={snapshot.total_value:.2f}, "
            f"positions={snapshot.position_count}"
        )
        return snapshot

    async def get_snapshot_history(
        self, days: int = DEFAULT_SNAPSHOT_DAYS
    ) -> list[PortfolioSnapshot]:
        """Snapshots from the last ``days`` days, newest first, capped in count."""
        portfolio = self._require_portfolio()
        if days <= 0:
            raise ValidationError(f"days must be positive, got {days}")
        since = self._clock() - timedelta(days=days)
        return await self._persistence.get_snapshots(
            portfolio.id, since=since, limit=self._config.snapshot_history_limit
        )


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def _price_map(quotes: Iterable[Quote] | Mapping[str, float]) -> dict[str, float]:
    if isinstance(quotes, Mapping):
        return {symbol.strip().upper(): float(price) for symbol, price in quotes.items()}
    return {quote.symbol.strip().upper(): float(quote.price) for quote in quotes}
