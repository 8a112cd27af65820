"""
Risk validation models.
"""

from dataclasses import dataclass, field
from datetime import datetime

from swingtrader.core.enums import RiskLevel
from swingtrader.core.types.financial import ZERO


@dataclass(frozen=True)
class RiskCheck:
    """Result of one named risk rule."""

    name: str
    passed: bool
    value: float
    limit: float
    message: str


@dataclass(frozen=True)
class RiskValidation:
    """Verdict of the risk manager for one proposed trade.

    adjusted_size is set on every approval and holds the whole share count
    the trade may execute with.
    """

    approved: bool
    reason: str
    risk_level: RiskLevel
    adjusted_size: int | None = None
    checks: tuple[RiskCheck, ...] = ()

    @classmethod
    def approve(
        cls, size: int, reason: str, risk_level: RiskLevel, checks: list[RiskCheck]
    ) -> "RiskValidation":
        return cls(
            approved=True,
            reason=reason,
            risk_level=risk_level,
            adjusted_size=size,
            checks=tuple(checks),
        )

    @classmethod
    def reject(
        cls, reason: str, risk_level: RiskLevel, checks: list[RiskCheck] | None = None
    ) -> "RiskValidation":
        return cls(approved=False, reason=reason, risk_level=risk_level, checks=tuple(checks or ()))

    @property
    def failed_checks(self) -> tuple[RiskCheck, ...]:
        return tuple(check for check in self.checks if not check.passed)


@dataclass(frozen=True)
class PositionRisk:
    """Exposure of one open position."""

    symbol: str
    market_value: float
    portfolio_percentage: float
    dollar_risk: float
    risk_percentage: float
    sector: str


@dataclass(frozen=True)
class RiskMetrics:
    """Portfolio-level risk picture."""

    total_value: float
    position_risks: tuple[PositionRisk, ...]
    sector_exposure: dict[str, float]
    current_drawdown: float
    daily_loss_percentage: float
    total_dollar_risk: float
    daily_loss_breaker_active: bool
    drawdown_breaker_active: bool
    calculated_at: datetime
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def buying_halted(self) -> bool:
        return self.daily_loss_breaker_active or self.drawdown_breaker_active

    @property
    def largest_exposure(self) -> float:
        return max((risk.portfolio_percentage for risk in self.position_risks), default=ZERO)
