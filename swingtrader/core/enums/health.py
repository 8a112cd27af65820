"""
Component health enumeration.
"""

from enum import StrEnum


class HealthStatus(StrEnum):
    """Health of an engine component."""

    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    OFFLINE = "OFFLINE"

    @property
    def is_degraded(self) -> bool:
        """Check if the component needs attention."""
        return self != self.HEALTHY
