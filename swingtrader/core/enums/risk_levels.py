"""
Risk level enumeration.
"""

from enum import StrEnum


class RiskLevel(StrEnum):
    """
    Severity attached to a risk validation.

    LOW for clean approvals, MEDIUM when a limit adjusted or rejected the
    trade, HIGH for circuit breakers and malformed requests.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        """Numeric ordering of the level."""
        return {"LOW": 0, "MEDIUM": 1, "HIGH": 2}[self.value]

    def escalate(self, other: "RiskLevel") -> "RiskLevel":
        """Return the more severe of two levels."""
        return self if self.rank >= other.rank else other
