"""
Core enumerations for the swing-trading engine.

This module provides centralized enumerations for domain concepts
like trade actions, risk levels, cycle phases and exit reasons.
"""

from .cycle_phases import CyclePhase, EnginePhase
from .exit_reasons import ExitReason
from .health import HealthStatus
from .risk_levels import RiskLevel
from .trade_types import TradeAction, TradeStatus

__all__ = [
    "TradeAction",
    "TradeStatus",
    "RiskLevel",
    "CyclePhase",
    "EnginePhase",
    "ExitReason",
    "HealthStatus",
]
