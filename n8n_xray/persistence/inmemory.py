"""In-memory implementation of the backtrace repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Sequence

from .models import BacktraceRow
from .repository import BacktraceRepository


class InMemoryBacktraceRepository(BacktraceRepository):
    """Store backtraces in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._traces: Dict[str, list[BacktraceRow]] = {}

    async def replace_backtrace(
        self, execution_id: str, rows: Sequence[BacktraceRow]
    ) -> None:
        now = datetime.now(timezone.utc)
        self._traces[execution_id] = sorted(
            (row.model_copy(update={"created_at": now}) for row in rows),
            key=lambda r: r.step_index,
        )

    async def get_backtrace(self, execution_id: str) -> list[BacktraceRow]:
        return list(self._traces.get(execution_id, []))

    async def delete_backtrace(self, execution_id: str) -> int:
        return len(self._traces.pop(execution_id, []))

    async def list_execution_ids(self) -> list[str]:
        return sorted(self._traces)
