"""
Core constants and limits.

Defines engine-wide defaults for risk limits, broker simulation and
portfolio bookkeeping. Runtime values come from settings; these are the
fallbacks the settings models are built from.
"""

# Portfolio defaults
DEFAULT_PORTFOLIO_ID = "default"
DEFAULT_INITIAL_CASH = 100000.0
SNAPSHOT_HISTORY_LIMIT = 100  # Maximum snapshots returned by a history query
DEFAULT_SNAPSHOT_DAYS = 30

# Risk limits (percent units)
MAX_POSITION_PERCENTAGE = 10.0
MAX_DAILY_LOSS_PERCENTAGE = 3.0
MAX_DRAWDOWN_PERCENTAGE = 8.0
MAX_SECTOR_CONCENTRATION = 30.0
MAX_RISK_PER_TRADE = 2.0
MAX_OPEN_POSITIONS = 8
DEFAULT_STOP_LOSS_PERCENTAGE = 5.0  # Assumed stop when a signal carries none

# Mock broker defaults
BROKER_LATENCY_MS = 100.0
BROKER_SLIPPAGE_PERCENT = 0.01  # 0.01% of the requested price
BROKER_FEE_PER_TRADE = 1.0
BROKER_FAILURE_RATE = 0.01
BROKER_FAILURE_MESSAGE = "Mock broker rejected order"
MIN_FILL_PRICE = 0.01

# Exit criteria
DEFAULT_TARGET_EXIT_PERCENTAGES = (50.0, 50.0)
EXIT_SIGNAL_CONFIDENCE = 1.0

# Scheduler
CYCLE_INTERVAL_SECONDS = 3600.0
PRICE_UPDATE_INTERVAL_SECONDS = 300.0
ENGINE_ERROR_HISTORY = 50
ENGINE_ERROR_WARNING_THRESHOLD = 5

# Numerical tolerance for the portfolio value invariant
VALUE_TOLERANCE = 1e-6

# Annualization factor for daily return statistics
TRADING_DAYS_PER_YEAR = 252

UNKNOWN_SECTOR = "Unknown"

DEFAULT_SECTOR_MAP: dict[str, str] = {
    "AAPL": "Technology",
    "MSFT": "Technology",
    "GOOGL": "Technology",
    "AMZN": "Consumer Discretionary",
    "TSLA": "Consumer Discretionary",
    "JPM": "Financials",
    "BAC": "Financials",
    "JNJ": "Healthcare",
    "PFE": "Healthcare",
}
