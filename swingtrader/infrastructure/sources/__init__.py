"""
Signal and quote source adapters.
"""

from .quotes import CachingQuoteSource, RandomWalkQuoteSource, StaticQuoteSource
from .signals import RandomSignalSource, StaticSignalSource

__all__ = [
    "CachingQuoteSource",
    "RandomSignalSource",
    "RandomWalkQuoteSource",
    "StaticQuoteSource",
    "StaticSignalSource",
]
