"""Repository abstraction for backtrace persistence."""

from __future__ import annotations

from typing import Protocol, Sequence

from .models import BacktraceRow


class BacktraceRepository(Protocol):
    """Protocol for backtrace storage backends."""

    async def replace_backtrace(
        self, execution_id: str, rows: Sequence[BacktraceRow]
    ) -> None:
        """Atomically delete any stored trace for ``execution_id`` and insert ``rows``."""

    async def get_backtrace(self, execution_id: str) -> list[BacktraceRow]:
        """Return the stored steps for ``execution_id`` ordered by step index."""

    async def delete_backtrace(self, execution_id: str) -> int:
        """Remove the stored trace and return the number of deleted rows."""

    async def list_execution_ids(self) -> list[str]:
        """Return every execution id that has a stored trace."""
