"""
Execution log writer.

Appends structured entries to the persistence port, mirrors them to
loguru and keeps an in-process copy so the order of engine activity can
be inspected without a store round trip.
"""

import itertools
from collections.abc import Mapping

from loguru import logger

from swingtrader.core.enums import CyclePhase
from swingtrader.core.exceptions.engine import PersistenceError
from swingtrader.core.interfaces.persistence import IPersistencePort
from swingtrader.core.models.execution_log import DetailValue, ExecutionLogEntry, LogKind
from swingtrader.core.utils.clock import Clock, utc_now


class ExecutionLogger:
    """Sequenced writer of execution log entries."""

    def __init__(self, persistence: IPersistencePort, clock: Clock = utc_now):
        self._persistence = persistence
        self._clock = clock
        self._sequence = itertools.count(1)
        self.entries: list[ExecutionLogEntry] = []
        self.dropped = 0

    async def record(
        self,
        kind: LogKind,
        component: str,
        action: str,
        details: Mapping[str, DetailValue],
        cycle_id: str | None = None,
        phase: CyclePhase | None = None,
        success: bool = True,
        error: str | None = None,
        duration_ms: float | None = None,
    ) -> ExecutionLogEntry:
        """Validate, sequence and append one entry.

        A store failure is logged and counted in ``dropped``; the entry is
        still kept in memory and returned.

        Raises:
            ValidationError: If details do not match the kind's schema
        """
        entry = ExecutionLogEntry(
            kind=kind,
            component=component,
            action=action,
            details=details,
            cycle_id=cycle_id,
            phase=phase,
            success=success,
            error=error,
            duration_ms=duration_ms,
            sequence=next(self._sequence),
            timestamp=self._clock(),
        )
        self.entries.append(entry)

        bound = logger.bind(cycle_id=cycle_id, component=component, kind=kind.value)
        if success:
            bound.debug(f"{component}.{action}: {dict(entry.details)}")
        else:
            bound.warning(f"{component}.{action} failed: {error}")

        try:
            await self._persistence.append_execution_log(entry)
        except PersistenceError as e:
            self.dropped += 1
            logger.error(f"Execution log entry {entry.sequence} not persisted: {e}")
        return entry

    def for_cycle(self, cycle_id: str) -> list[ExecutionLogEntry]:
        return [entry for entry in self.entries if entry.cycle_id == cycle_id]
