"""
Logging setup and the execution log writer.
"""

from .execution_log import ExecutionLogger
from .sinks import configure_logging

__all__ = ["ExecutionLogger", "configure_logging"]
