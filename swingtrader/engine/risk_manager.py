"""
Risk validation and position sizing.

The risk manager is a pure function of (signal, portfolio, limits): it
holds no state, performs no I/O and never mutates the portfolio. Every
verdict comes back as a RiskValidation value with the individual checks
that produced it.
"""

from swingtrader.config.settings import RiskLimits
from swingtrader.core.constants import UNKNOWN_SECTOR
from swingtrader.core.enums import RiskLevel
from swingtrader.core.models.portfolio import Portfolio
from swingtrader.core.models.position import Position
from swingtrader.core.models.risk import PositionRisk, RiskCheck, RiskMetrics, RiskValidation
from swingtrader.core.models.signal import TradingSignal
from swingtrader.core.types.financial import (
    ZERO,
    floor_shares,
    fraction_of,
    percentage_of,
    shares_for_budget,
)

INVALID_POSITION_SIZE = "Invalid position size"
SYMBOL_REQUIRED = "symbol is required"


class RiskManager:
    """Validates and sizes proposed trades against configured limits."""

    def validate(
        self, signal: TradingSignal, portfolio: Portfolio, limits: RiskLimits
    ) -> RiskValidation:
        """Validate a signal and compute the share count it may trade.

        Args:
            signal: Proposed trade
            portfolio: Current portfolio state (read only)
            limits: Risk limits to apply

        Returns:
            RiskValidation; approved validations always carry adjusted_size
        """
        symbol = signal.symbol.strip().upper() if isinstance(signal.symbol, str) else ""
        if not symbol:
            return RiskValidation.reject(SYMBOL_REQUIRED, RiskLevel.HIGH)

        action = signal.parsed_action
        if action is None:
            return RiskValidation.reject(f"Invalid action: {signal.action}", RiskLevel.HIGH)

        if action.is_sell:
            return self._validate_sell(symbol, signal, portfolio)
        return self._validate_buy(symbol, signal, portfolio, limits)

    def _validate_sell(
        self, symbol: str, signal: TradingSignal, portfolio: Portfolio
    ) -> RiskValidation:
        """Sells only need something to sell; they are never blocked by breakers."""
        position = portfolio.find_open(symbol)
        held = position.quantity if position else 0
        requested = floor_shares(signal.recommended_size)

        check = RiskCheck(
            name="position_exists",
            passed=held > 0,
            value=float(requested),
            limit=float(held),
            message=f"Holding {held} shares of {symbol}",
        )
        if held <= 0 or requested <= 0:
            return RiskValidation.reject(INVALID_POSITION_SIZE, RiskLevel.MEDIUM, [check])

        size = min(requested, held)
        if size < requested:
            return RiskValidation.approve(
                size,
                f"Sell size capped from {requested} to held quantity {held}",
                RiskLevel.MEDIUM,
                [check],
            )
        return RiskValidation.approve(size, "Sell approved", RiskLevel.LOW, [check])

    def _validate_buy(
        self, symbol: str, signal: TradingSignal, portfolio: Portfolio, limits: RiskLimits
    ) -> RiskValidation:
        entry_price = signal.entry_price
        if not entry_price or entry_price <= ZERO:
            return RiskValidation.reject(
                f"Invalid entry price: {signal.entry_price}", RiskLevel.HIGH
            )

        checks: list[RiskCheck] = []
        breaker_reason = self._check_circuit_breakers(portfolio, limits, checks)
        if breaker_reason:
            return RiskValidation.reject(breaker_reason, RiskLevel.HIGH, checks)

        existing = portfolio.find_open(symbol)
        if existing is None:
            open_count = len(portfolio.open_positions())
            slots_ok = open_count < limits.max_open_positions
            checks.append(
                RiskCheck(
                    name="open_positions",
                    passed=slots_ok,
                    value=float(open_count),
                    limit=float(limits.max_open_positions),
                    message=f"{open_count} of {limits.max_open_positions} position slots used",
                )
            )
            if not slots_ok:
                return RiskValidation.reject(
                    f"Maximum open positions reached ({open_count}/{limits.max_open_positions})",
                    RiskLevel.MEDIUM,
                    checks,
                )

        requested = floor_shares(signal.recommended_size)
        if requested <= 0:
            return RiskValidation.reject(INVALID_POSITION_SIZE, RiskLevel.MEDIUM, checks)

        size, binding = self._apply_size_caps(
            symbol, signal, requested, existing, portfolio, limits, checks
        )

        if size <= 0:
            return RiskValidation.reject(
                f"Trade size rounds to zero after {', '.join(binding)}",
                RiskLevel.MEDIUM,
                checks,
            )
        if size < requested:
            return RiskValidation.approve(
                size,
                f"Position size adjusted from {requested} to {size} shares by {', '.join(binding)}",
                RiskLevel.MEDIUM,
                checks,
            )
        return RiskValidation.approve(size, "Trade approved", RiskLevel.LOW, checks)

    def _check_circuit_breakers(
        self, portfolio: Portfolio, limits: RiskLimits, checks: list[RiskCheck]
    ) -> str | None:
        """Append breaker checks and return a rejection reason if one is tripped."""
        daily_limit = fraction_of(limits.max_daily_loss_percentage, portfolio.total_value)
        daily_ok = portfolio.daily_pnl > -daily_limit
        checks.append(
            RiskCheck(
                name="daily_loss",
                passed=daily_ok,
                value=portfolio.daily_pnl,
                limit=-daily_limit,
                message=f"Daily PnL {portfolio.daily_pnl:.2f} vs limit -{daily_limit:.2f}",
            )
        )

        drawdown = portfolio.drawdown_percent()
        drawdown_ok = drawdown < limits.max_drawdown_percentage
        checks.append(
            RiskCheck(
                name="drawdown",
                passed=drawdown_ok,
                value=drawdown,
                limit=limits.max_drawdown_percentage,
                message=f"Drawdown {drawdown:.2f}% vs limit {limits.max_drawdown_percentage}%",
            )
        )

        if not daily_ok:
            return (
                f"Daily loss limit breached: {portfolio.daily_pnl:.2f} "
                f"exceeds {limits.max_daily_loss_percentage}% of portfolio value"
            )
        if not drawdown_ok:
            return (
                f"Drawdown limit breached: {drawdown:.2f}% "
                f"from peak (limit {limits.max_drawdown_percentage}%)"
            )
        return None

    def _apply_size_caps(
        self,
        symbol: str,
        signal: TradingSignal,
        requested: int,
        existing: Position | None,
        portfolio: Portfolio,
        limits: RiskLimits,
        checks: list[RiskCheck],
    ) -> tuple[int, list[str]]:
        """Reduce the requested size by every sizing limit.

        The per-trade risk cap is applied first; cash, position and sector
        caps then bound the result. Returns the size and the names of the
        limits that bound it.
        """
        entry_price = signal.entry_price
        total_value = portfolio.total_value
        held = existing.quantity if existing else 0
        binding: list[str] = []
        size = requested

        # Per-trade dollar risk
        stop_loss = signal.stop_loss
        if not ZERO < stop_loss < entry_price:
            stop_loss = entry_price * (1 - limits.default_stop_loss_percentage / 100)
        risk_per_share = entry_price - stop_loss
        max_risk = fraction_of(limits.max_risk_per_trade, total_value)
        dollar_risk = risk_per_share * size
        risk_ok = dollar_risk <= max_risk
        checks.append(
            RiskCheck(
                name="risk_per_trade",
                passed=risk_ok,
                value=dollar_risk,
                limit=max_risk,
                message=f"Dollar risk {dollar_risk:.2f} vs limit {max_risk:.2f}",
            )
        )
        if not risk_ok:
            size = shares_for_budget(max_risk, risk_per_share)
            binding.append(f"risk per trade limit ({limits.max_risk_per_trade}% of portfolio)")

        # Available cash
        cash_cap = shares_for_budget(portfolio.cash_balance, entry_price)
        checks.append(
            RiskCheck(
                name="cash",
                passed=size <= cash_cap,
                value=size * entry_price,
                limit=portfolio.cash_balance,
                message=f"Cash covers {cash_cap} shares at {entry_price:.2f}",
            )
        )
        if size > cash_cap:
            size = cash_cap
            binding.append("available cash")

        # Single position limit, post-trade value at the execution price
        max_position_value = fraction_of(limits.max_position_percentage, total_value)
        position_cap = max(0, shares_for_budget(max_position_value, entry_price) - held)
        checks.append(
            RiskCheck(
                name="position_size",
                passed=size <= position_cap,
                value=(held + size) * entry_price,
                limit=max_position_value,
                message=(
                    f"Post-trade position value vs {limits.max_position_percentage}% "
                    f"of {total_value:.2f}"
                ),
            )
        )
        if size > position_cap:
            size = position_cap
            binding.append(f"position limit ({limits.max_position_percentage}% of portfolio)")

        # Sector concentration
        declared = signal.sector or (existing.sector if existing else None)
        sector = limits.sector_for(symbol, declared)
        if sector is None:
            checks.append(
                RiskCheck(
                    name="sector_concentration",
                    passed=True,
                    value=ZERO,
                    limit=limits.max_sector_concentration,
                    message=f"Sector unknown for {symbol}, check skipped",
                )
            )
            return size, binding

        other_exposure = sum(
            (
                position.market_value
                for position in portfolio.open_positions()
                if position.symbol != symbol
                and limits.sector_for(position.symbol, position.sector) == sector
            ),
            ZERO,
        )
        max_sector_value = fraction_of(limits.max_sector_concentration, total_value)
        sector_cap = max(
            0, shares_for_budget(max_sector_value - other_exposure, entry_price) - held
        )
        checks.append(
            RiskCheck(
                name="sector_concentration",
                passed=size <= sector_cap,
                value=other_exposure + (held + size) * entry_price,
                limit=max_sector_value,
                message=f"{sector} exposure vs {limits.max_sector_concentration}% limit",
            )
        )
        if size > sector_cap:
            size = sector_cap
            binding.append(
                f"sector concentration limit for {sector} ({limits.max_sector_concentration}%)"
            )

        return size, binding

    def assess_portfolio(self, portfolio: Portfolio, limits: RiskLimits) -> RiskMetrics:
        """Summarize current exposure and breaker state.

        Args:
            portfolio: Portfolio to assess
            limits: Risk limits to compare against

        Returns:
            RiskMetrics as of the portfolio's last update
        """
        total_value = portfolio.total_value
        warnings: list[str] = []
        position_risks: list[PositionRisk] = []

        for position in portfolio.open_positions():
            stop_loss = position.stop_loss
            if stop_loss <= ZERO:
                stop_loss = position.entry_price * (1 - limits.default_stop_loss_percentage / 100)
            dollar_risk = max(ZERO, position.current_price - stop_loss) * position.quantity
            exposure = percentage_of(position.market_value, total_value)
            sector = limits.sector_for(position.symbol, position.sector) or UNKNOWN_SECTOR
            position_risks.append(
                PositionRisk(
                    symbol=position.symbol,
                    market_value=position.market_value,
                    portfolio_percentage=exposure,
                    dollar_risk=dollar_risk,
                    risk_percentage=percentage_of(dollar_risk, total_value),
                    sector=sector,
                )
            )
            if exposure > limits.max_position_percentage:
                warnings.append(
                    f"{position.symbol} is {exposure:.2f}% of portfolio "
                    f"(limit {limits.max_position_percentage}%)"
                )

        sector_values: dict[str, float] = {}
        for risk in position_risks:
            sector_values[risk.sector] = sector_values.get(risk.sector, ZERO) + risk.market_value
        sector_exposure = {
            sector: percentage_of(value, total_value) for sector, value in sector_values.items()
        }
        for sector, exposure in sector_exposure.items():
            if sector != UNKNOWN_SECTOR and exposure > limits.max_sector_concentration:
                warnings.append(
                    f"{sector} exposure {exposure:.2f}% exceeds {limits.max_sector_concentration}%"
                )

        daily_loss = percentage_of(-portfolio.daily_pnl, total_value) if portfolio.daily_pnl < 0 else ZERO
        drawdown = portfolio.drawdown_percent()

        return RiskMetrics(
            total_value=total_value,
            position_risks=tuple(position_risks),
            sector_exposure=sector_exposure,
            current_drawdown=drawdown,
            daily_loss_percentage=daily_loss,
            total_dollar_risk=sum((risk.dollar_risk for risk in position_risks), ZERO),
            daily_loss_breaker_active=daily_loss >= limits.max_daily_loss_percentage,
            drawdown_breaker_active=drawdown >= limits.max_drawdown_percentage,
            calculated_at=portfolio.last_updated,
            warnings=tuple(warnings),
        )
