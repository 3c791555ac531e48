"""Per-node extraction of timing, status and resolved input/output."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from ..constants import DEFAULT_EXECUTION_STATUS, DEFAULT_OUTPUT_INDEX, FIRST_RUN_INDEX
from ..contracts import NodeExecutionRecord, NotFound
from ..errors import MalformedTraceError
from .resolver import deref, resolve

logger = logging.getLogger(__name__)

NodeLookup = Union[NodeExecutionRecord, NotFound]


def _as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric timing value {value!r}")
        return 0


def _port_items(
    run: Mapping[str, Any], field: str, arena: Sequence[Any], index: int
) -> tuple[Optional[list], Optional[str]]:
    """Walk ``run[field].main[index]`` and resolve every item found there.

    Returns the resolved items, or ``None`` and the reason the walk stopped.
    """
    container = deref(run.get(field), arena)
    if not isinstance(container, dict):
        return None, f"no {field}"
    ports = deref(container.get("main"), arena)
    if not isinstance(ports, list):
        return None, f"no {field}.main"
    if index < 0 or index >= len(ports):
        return None, f"no {field}.main[{index}] ({len(ports)} ports available)"
    items = deref(ports[index], arena)
    if not isinstance(items, list):
        return None, f"{field}.main[{index}] holds no items"
    return [resolve(item, arena) for item in items], None


def extract_node(
    node_name: str,
    run_data: Mapping[str, Any],
    arena: Sequence[Any],
    output_index: int = DEFAULT_OUTPUT_INDEX,
) -> NodeLookup:
    """Extract the first run of ``node_name`` from ``run_data``.

    Missing hops on the input/output walk degrade to ``None`` with a reason
    rather than failing the node.
    """
    if node_name not in run_data:
        return NotFound(node_name=node_name, reason="node not found in run data")

    runs = deref(run_data[node_name], arena)
    if not isinstance(runs, list):
        raise MalformedTraceError(
            f"Run list for node {node_name!r} is {type(runs).__name__}, expected list"
        )
    if not runs:
        return NotFound(node_name=node_name, reason="no execution data")

    run = deref(runs[FIRST_RUN_INDEX], arena)
    if not isinstance(run, dict):
        raise MalformedTraceError(
            f"Run entry for node {node_name!r} is {type(run).__name__}, expected object"
        )

    status = deref(run.get("executionStatus"), arena)
    output, output_reason = _port_items(run, "data", arena, output_index)
    input_, input_reason = _port_items(run, "inputData", arena, DEFAULT_OUTPUT_INDEX)
    if output_reason:
        logger.debug(f"Node {node_name!r} has no output: {output_reason}")

    return NodeExecutionRecord(
        node_name=node_name,
        start_time=_as_int(deref(run.get("startTime"), arena)),
        execution_time=_as_int(deref(run.get("executionTime"), arena)),
        execution_status=str(status) if status else DEFAULT_EXECUTION_STATUS,
        input=input_,
        output=output,
        input_reason=input_reason,
        output_reason=output_reason,
    )
