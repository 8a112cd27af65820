"""Engine settings and configuration."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from swingtrader.core import constants
from swingtrader.core.exceptions.engine import ConfigurationError


class RiskLimits(BaseModel):
    """Risk limits applied to every trade. Percentages are in percent units."""

    model_config = ConfigDict(frozen=True)

    max_position_percentage: float = Field(default=constants.MAX_POSITION_PERCENTAGE, gt=0, le=100)
    max_daily_loss_percentage: float = Field(
        default=constants.MAX_DAILY_LOSS_PERCENTAGE, gt=0, le=100
    )
    max_drawdown_percentage: float = Field(default=constants.MAX_DRAWDOWN_PERCENTAGE, gt=0, le=100)
    max_sector_concentration: float = Field(
        default=constants.MAX_SECTOR_CONCENTRATION, gt=0, le=100
    )
    max_risk_per_trade: float = Field(default=constants.MAX_RISK_PER_TRADE, gt=0, le=100)
    max_open_positions: int = Field(default=constants.MAX_OPEN_POSITIONS, ge=1)
    default_stop_loss_percentage: float = Field(
        default=constants.DEFAULT_STOP_LOSS_PERCENTAGE, gt=0, lt=100
    )
    sector_map: dict[str, str] = Field(default_factory=lambda: dict(constants.DEFAULT_SECTOR_MAP))

    @field_validator("sector_map")
    @classmethod
    def normalize_sector_symbols(cls, v: dict[str, str]) -> dict[str, str]:
        """Upper-case symbols so lookups match normalized signal symbols."""
        return {symbol.strip().upper(): sector for symbol, sector in v.items()}

    def sector_for(self, symbol: str, declared: str | None = None) -> str | None:
        """Resolve a symbol's sector, preferring an explicitly declared one."""
        return declared or self.sector_map.get(symbol)


class BrokerConfig(BaseModel):
    """Mock broker behaviour."""

    model_config = ConfigDict(frozen=True)

    latency_ms: float = Field(default=constants.BROKER_LATENCY_MS, ge=0)
    latency_jitter_ms: float = Field(default=0.0, ge=0)
    slippage_percent: float = Field(default=constants.BROKER_SLIPPAGE_PERCENT, ge=0, lt=100)
    fee_per_trade: float = Field(default=constants.BROKER_FEE_PER_TRADE, ge=0)
    failure_rate: float = Field(default=constants.BROKER_FAILURE_RATE, ge=0, le=1)
    seed: int | None = None

    @model_validator(mode="after")
    def check_jitter(self) -> "BrokerConfig":
        if self.latency_jitter_ms > self.latency_ms:
            raise ValueError("latency_jitter_ms cannot exceed latency_ms")
        return self

    @property
    def worst_case_fill_factor(self) -> float:
        """Largest multiplier a buy fill can be above the requested price."""
        return 1 + self.slippage_percent / 100


class PortfolioConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    portfolio_id: str = Field(default=constants.DEFAULT_PORTFOLIO_ID, min_length=1)
    initial_cash: float = Field(default=constants.DEFAULT_INITIAL_CASH, gt=0)
    snapshot_history_limit: int = Field(default=constants.SNAPSHOT_HISTORY_LIMIT, ge=1)


class ExitConfig(BaseModel):
    """Exit criteria defaults."""

    model_config = ConfigDict(frozen=True)

    target_exit_percentages: tuple[float, ...] = constants.DEFAULT_TARGET_EXIT_PERCENTAGES
    max_holding_days: float | None = Field(default=None, gt=0)

    @field_validator("target_exit_percentages")
    @classmethod
    def validate_percentages(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        for percentage in v:
            if not 0 < percentage <= 100:
                raise ValueError(f"Exit percentage must be in (0, 100], got {percentage}")
        return v

    def exit_percentage_for(self, target_index: int) -> float:
        """Default percentage for a target; the last configured value repeats."""
        if not self.target_exit_percentages:
            return 100.0
        index = min(target_index, len(self.target_exit_percentages) - 1)
        return self.target_exit_percentages[index]


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    cycle_interval_seconds: float = Field(default=constants.CYCLE_INTERVAL_SECONDS, gt=0)
    price_update_interval_seconds: float = Field(
        default=constants.PRICE_UPDATE_INTERVAL_SECONDS, gt=0
    )
    schedule_enabled: bool = True


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    serialize: bool = False
    file_path: Path | None = None
    rotation: str = "10 MB"
    retention: str = "14 days"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(f"Unknown log level: {v}")
        return level


class EngineSettings(BaseSettings):
    """Engine configuration loaded from environment variables.

    Nested values use a double underscore, e.g.
    ``SWINGTRADER_RISK__MAX_POSITION_PERCENTAGE=5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SWINGTRADER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    risk: RiskLimits = Field(default_factory=RiskLimits)
    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    portfolio: PortfolioConfig = Field(default_factory=PortfolioConfig)
    exit: ExitConfig = Field(default_factory=ExitConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Global settings instance (can be replaced at runtime)
_settings: EngineSettings | None = None


def get_settings() -> EngineSettings:
    """Return the current settings instance.

    Raises:
        ConfigurationError: If the environment holds invalid settings
    """
    global _settings
    if _settings is None:
        try:
            _settings = EngineSettings()
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid engine settings: {e}") from e
    return _settings


def set_settings(settings: EngineSettings) -> None:
    """Replace the global settings instance."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the next access reloads from the environment."""
    global _settings
    _settings = None
