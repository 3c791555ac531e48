"""Rebuild the ordered node-by-node flow of an execution ("forward walk")."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from ..constants import DEFAULT_EXECUTION_STATUS, END_SENTINEL, RUN_DATA_KEY
from ..contracts import (
    ExecutionFlow,
    ExecutionInfo,
    ExecutionRecord,
    FlowStep,
    NodeExecutionRecord,
)
from ..errors import MalformedTraceError, NoRunDataError
from .extractor import extract_node
from .resolver import deref, is_pointer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunDataView:
    """The node-name mapping together with the arena its pointers index."""

    run_data: dict[str, Any]
    arena: Sequence[Any]


def _locate_in_arena(arena: list) -> RunDataView:
    for slot in arena:
        if isinstance(slot, dict) and RUN_DATA_KEY in slot:
            entry = slot[RUN_DATA_KEY]
            break
    else:
        raise NoRunDataError("No runData entry found in execution data")

    if is_pointer(entry):
        index = int(entry)
        if index >= len(arena):
            raise MalformedTraceError(
                f"runData points at index {index} outside arena of length {len(arena)}"
            )
        run_data = deref(arena[index], arena)
    elif isinstance(entry, dict):
        run_data = entry
    else:
        raise MalformedTraceError(f"runData entry {entry!r} is not a pointer")

    if not isinstance(run_data, dict):
        raise MalformedTraceError(
            f"runData resolves to {type(run_data).__name__}, expected object"
        )
    return RunDataView(run_data=run_data, arena=arena)


def _locate_inline(data: dict) -> RunDataView:
    result_data = data.get("resultData", data)
    if not isinstance(result_data, dict) or RUN_DATA_KEY not in result_data:
        raise NoRunDataError("No runData entry found in execution data")
    run_data = result_data[RUN_DATA_KEY]
    if not isinstance(run_data, dict):
        raise MalformedTraceError(
            f"runData is {type(run_data).__name__}, expected object"
        )
    # Expanded data holds no pointers; an empty arena keeps digit strings literal.
    return RunDataView(run_data=run_data, arena=[])


def locate_run_data(raw_data: Any) -> RunDataView:
    """Find the RunDataMap inside compressed or expanded execution data.

    Raises:
        NoRunDataError: When the data has no runData section at all.
        MalformedTraceError: When the data is not valid JSON or the runData
            section cannot be followed.
    """
    if isinstance(raw_data, (str, bytes, bytearray)):
        try:
            raw_data = json.loads(raw_data)
        except ValueError as exc:
            raise MalformedTraceError(f"raw data is not valid JSON: {exc}") from exc
    if isinstance(raw_data, list):
        return _locate_in_arena(raw_data)
    if isinstance(raw_data, dict):
        return _locate_inline(raw_data)
    raise NoRunDataError("Execution record carries no execution data")


def collect_records(view: RunDataView) -> list[NodeExecutionRecord]:
    """Extract every node in the map, silently skipping nodes that never ran."""
    records: list[NodeExecutionRecord] = []
    for node_name in view.run_data:
        found = extract_node(node_name, view.run_data, view.arena)
        if isinstance(found, NodeExecutionRecord):
            records.append(found)
        else:
            logger.debug(f"Skipping node {node_name!r}: {found.reason}")
    return records


def order_records(records: Iterable[NodeExecutionRecord]) -> list[NodeExecutionRecord]:
    """Drop records without valid timing and sort the rest by start time.

    Equal start times are ordered by node name.
    """
    timed = [r for r in records if r.start_time > 0 and r.execution_time >= 0]
    return sorted(timed, key=lambda r: (r.start_time, r.node_name))


def build_steps(records: Sequence[NodeExecutionRecord]) -> list[FlowStep]:
    steps: list[FlowStep] = []
    for position, record in enumerate(records):
        is_last = position == len(records) - 1
        steps.append(
            FlowStep(
                step=position + 1,
                node_name=record.node_name,
                input=record.input,
                output=record.output,
                execution_time_ms=record.execution_time,
                execution_status=record.execution_status,
                goes_to=END_SENTINEL if is_last else records[position + 1].node_name,
            )
        )
    return steps


def build_execution_info(
    record: ExecutionRecord, steps: Sequence[FlowStep]
) -> ExecutionInfo:
    success = sum(1 for s in steps if s.execution_status == DEFAULT_EXECUTION_STATUS)
    errors = sum(1 for s in steps if s.execution_status == "error")
    return ExecutionInfo(
        execution_id=record.id,
        workflow_id=record.workflow_id,
        status=record.status,
        finished=record.finished,
        started_at=record.started_at or "unknown",
        stopped_at=record.stopped_at or "unknown",
        total_nodes=len(steps),
        total_execution_time_ms=sum(s.execution_time_ms for s in steps),
        success_nodes=success,
        error_nodes=errors,
        other_nodes=len(steps) - success - errors,
    )


def reconstruct(record: ExecutionRecord) -> ExecutionFlow:
    """Reconstruct the ordered execution flow of ``record``.

    The result depends only on ``record``; calling this twice on the same
    record yields identical flows.

    Raises:
        NoRunDataError: The execution never produced run data.
        MalformedTraceError: The compressed data cannot be walked.
    """
    view = locate_run_data(record.raw_data)
    ordered = order_records(collect_records(view))
    steps = build_steps(ordered)
    logger.debug(
        f"Execution {record.id}: {len(view.run_data)} nodes in run data, "
        f"{len(steps)} steps in flow"
    )
    return ExecutionFlow(
        execution_info=build_execution_info(record, steps), data_flow=steps
    )
