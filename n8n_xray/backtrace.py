"""Persist reconstructed execution flows as backtrace rows."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from .constants import END_SENTINEL
from .contracts import ExecutionFlow
from .errors import IdentifierResolutionWarning
from .persistence import BacktraceRepository, BacktraceRow

logger = logging.getLogger(__name__)


@dataclass
class PersistOutcome:
    """Rows written for one execution plus any identifier warnings."""

    execution_id: str
    rows_written: int
    warnings: list[IdentifierResolutionWarning] = field(default_factory=list)


def resolve_node_ids(
    workflow_data: Optional[Mapping[str, Any]], node_names: Iterable[str]
) -> tuple[dict[str, Optional[str]], list[IdentifierResolutionWarning]]:
    """Map node display names to stable node ids using a workflow document.

    Names without a match, or whose id is not a UUID, map to ``None`` and
    produce a warning instead of an error.
    """
    names = list(dict.fromkeys(node_names))
    nodes = workflow_data.get("nodes") if workflow_data else None
    if not isinstance(nodes, list):
        return dict.fromkeys(names), [
            IdentifierResolutionWarning(None, "workflow document unavailable")
        ]

    by_name: dict[str, Any] = {}
    for node in nodes:
        if isinstance(node, dict) and "name" in node:
            by_name[node["name"]] = node.get("id")

    ids: dict[str, Optional[str]] = {}
    warnings: list[IdentifierResolutionWarning] = []
    for name in names:
        if name not in by_name:
            ids[name] = None
            warnings.append(
                IdentifierResolutionWarning(name, "node not found in workflow document")
            )
            continue
        try:
            ids[name] = str(uuid.UUID(str(by_name[name])))
        except ValueError:
            ids[name] = None
            warnings.append(
                IdentifierResolutionWarning(name, f"node id {by_name[name]!r} is not a UUID")
            )
    return ids, warnings


def build_rows(
    flow: ExecutionFlow, node_ids: Mapping[str, Optional[str]]
) -> list[BacktraceRow]:
    execution_id = flow.execution_info.execution_id
    rows = []
    for step in flow.data_flow:
        next_name = None if step.goes_to == END_SENTINEL else step.goes_to
        rows.append(
            BacktraceRow(
                execution_id=execution_id,
                step_index=step.step - 1,
                node_uuid=node_ids.get(step.node_name),
                node_name=step.node_name,
                input_json=step.input,
                output_json=step.output,
                next_node_uuid=node_ids.get(next_name) if next_name else None,
                next_node_name=next_name,
            )
        )
    return rows


class BacktraceWriter:
    """Replace the stored backtrace of an execution with a fresh flow.

    Writes for the same execution id are serialized within this writer; the
    repository performs delete and insert in a single transaction.
    """

    def __init__(self, repository: BacktraceRepository) -> None:
        self._repository = repository
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def write(
        self, flow: ExecutionFlow, workflow_data: Optional[Mapping[str, Any]] = None
    ) -> PersistOutcome:
        execution_id = flow.execution_info.execution_id
        node_ids, warnings = resolve_node_ids(
            workflow_data, (step.node_name for step in flow.data_flow)
        )
        for warning in warnings:
            logger.warning(f"Execution {execution_id}: {warning}")

        rows = build_rows(flow, node_ids)
        lock = self._locks.setdefault(execution_id, asyncio.Lock())
        self._lock_users[execution_id] = self._lock_users.get(execution_id, 0) + 1
        try:
            async with lock:
                await self._repository.replace_backtrace(execution_id, rows)
        finally:
            self._lock_users[execution_id] -= 1
            if not self._lock_users[execution_id]:
                del self._lock_users[execution_id]
                del self._locks[execution_id]
        logger.info(f"Stored backtrace for execution {execution_id}: {len(rows)} steps")
        return PersistOutcome(
            execution_id=execution_id, rows_written=len(rows), warnings=warnings
        )
