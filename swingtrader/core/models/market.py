"""
Market quote model.
"""

from dataclasses import dataclass, field
from datetime import datetime

from swingtrader.core.utils.clock import utc_now


@dataclass(frozen=True)
class Quote:
    """Last traded price for a symbol."""

    symbol: str
    price: float
    timestamp: datetime = field(default_factory=utc_now)
