"""
Custom exception hierarchy for the swing-trading engine.

This module defines domain-specific exceptions for better error handling.
Simulated broker rejections and risk rejections are not exceptions; they
travel as result values. Exceptions here mark misuse or fatal conditions.
"""


class SwingTraderError(Exception):
    """Base exception for all engine errors."""

    pass


class ValidationError(SwingTraderError):
    """Raised when input validation fails."""

    pass


class ConfigurationError(SwingTraderError):
    """Raised when configuration is invalid."""

    pass


class PortfolioError(SwingTraderError):
    """Raised when portfolio operations fail."""

    pass


class InsufficientFundsError(PortfolioError):
    """Raised when there are insufficient funds for an operation."""

    def __init__(self, required: float, available: float, operation: str = "operation"):
        self.required = required
        self.available = available
        self.operation = operation
        super().__init__(
            f"Insufficient funds for {operation}: required={required:.2f}, available={available:.2f}"
        )


class PositionNotFoundError(PortfolioError):
    """Raised when trying to operate on a non-existent position."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Position not found for symbol: {symbol}")


class InitializationError(PortfolioError):
    """Raised when the portfolio manager is not (or could not be) initialized."""

    pass


class PersistenceError(SwingTraderError):
    """Raised when a persistence port operation fails."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"Persistence operation '{operation}' failed: {message}")


class RollbackError(PersistenceError):
    """Raised when a compensating write could not undo a partial persist."""

    def __init__(self, operation: str, message: str, original: PersistenceError):
        self.original = original
        super().__init__(operation, f"{message} (after: {original})")


class TradingEngineError(SwingTraderError):
    """Raised when the trading engine lifecycle is misused."""

    def __init__(self, message: str, code: str):
        self.code = code
        super().__init__(message)
