"""Execution status summary: node counts, error tally and duration."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .constants import DEFAULT_EXECUTION_STATUS, UNKNOWN_STATUS
from .contracts import ExecutionRecord, NodeExecutionRecord
from .trace import extract_node, locate_run_data


class NodeStatus(BaseModel):
    status: str
    start_time: int = 0
    execution_time: int = 0
    item_count: int = 0


class ExecutionSummary(BaseModel):
    execution_id: str
    workflow_id: Optional[str] = None
    status: str
    finished: bool
    started_at: Optional[str] = None
    stopped_at: Optional[str] = None
    total_nodes: int = 0
    successful_nodes: int = 0
    failed_nodes: int = 0
    error_count: int = 0
    execution_time_seconds: Optional[int] = None
    classification: Literal["errors", "noerrors"]
    node_statuses: dict[str, NodeStatus] = Field(default_factory=dict)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def wall_clock_seconds(started_at: Optional[str], stopped_at: Optional[str]) -> Optional[int]:
    """Whole seconds between two ISO timestamps, or ``None`` if either is unusable."""
    start = _parse_timestamp(started_at)
    stop = _parse_timestamp(stopped_at)
    if start is None or stop is None:
        return None
    try:
        return int((stop - start).total_seconds())
    except TypeError:
        # naive and aware timestamps mixed
        return None


def summarize_execution(record: ExecutionRecord) -> ExecutionSummary:
    """Summarize node outcomes for every node present in the run data.

    Unlike the flow, this counts nodes regardless of their timing.

    Raises:
        NoRunDataError: The execution never produced run data.
        MalformedTraceError: The compressed data cannot be walked.
    """
    view = locate_run_data(record.raw_data)
    statuses: dict[str, NodeStatus] = {}
    for node_name in sorted(view.run_data):
        found = extract_node(node_name, view.run_data, view.arena)
        if isinstance(found, NodeExecutionRecord):
            statuses[node_name] = NodeStatus(
                status=found.execution_status,
                start_time=found.start_time,
                execution_time=found.execution_time,
                item_count=len(found.output or []),
            )
        else:
            statuses[node_name] = NodeStatus(status=UNKNOWN_STATUS)

    successful = sum(1 for s in statuses.values() if s.status == DEFAULT_EXECUTION_STATUS)
    errors = sum(1 for s in statuses.values() if s.status == "error")
    noerrors = errors == 0 and record.status == "success"
    return ExecutionSummary(
        execution_id=record.id,
        workflow_id=record.workflow_id,
        status=record.status,
        finished=record.finished,
        started_at=record.started_at,
        stopped_at=record.stopped_at,
        total_nodes=len(statuses),
        successful_nodes=successful,
        failed_nodes=len(statuses) - successful,
        error_count=errors,
        execution_time_seconds=wall_clock_seconds(record.started_at, record.stopped_at),
        classification="noerrors" if noerrors else "errors",
        node_statuses=statuses,
    )
