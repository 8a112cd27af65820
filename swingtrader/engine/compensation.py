"""
Ordered persistence steps with compensating actions.

A trade touches several records (position, portfolio, trade). Steps are
applied in order; when one fails, the compensations of the steps already
applied run in reverse so the durable store returns to its prior state.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from swingtrader.core.exceptions.engine import PersistenceError, RollbackError
from swingtrader.core.types.result import Result


@dataclass(frozen=True)
class PersistStep:
    """One durable write and how to undo it."""

    operation: str
    apply: Callable[[], Awaitable[object]]
    compensate: Callable[[], Awaitable[object]] | None = None


async def commit_steps(steps: list[PersistStep]) -> Result[None]:
    """Apply steps in order, compensating on the first failure.

    Args:
        steps: Writes to apply

    Returns:
        Success, or a failure naming the step that failed

    Raises:
        RollbackError: If a compensation itself fails
    """
    applied: list[PersistStep] = []
    for step in steps:
        try:
            await step.apply()
        except PersistenceError as e:
            logger.error(f"Persist step {step.operation} failed: {e.message}")
            await _compensate(applied, e)
            return Result.failure(f"{step.operation}: {e.message}")
        applied.append(step)
    return Result.success(None)


async def _compensate(applied: list[PersistStep], original: PersistenceError) -> None:
    for step in reversed(applied):
        if step.compensate is None:
            continue
        try:
            await step.compensate()
        except PersistenceError as e:
            logger.error(f"Compensation for {step.operation} failed: {e.message}")
            raise RollbackError(step.operation, "compensating write failed", original) from e
        logger.info(f"Compensated {step.operation}")
