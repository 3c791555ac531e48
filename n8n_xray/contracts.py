"""Data contracts shared by the trace core, the sinks and the CLI."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_EXECUTION_STATUS, UNKNOWN_STATUS


def _timestamp_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class ExecutionRecord(BaseModel):
    """One run of a workflow as stored by the automation platform.

    ``raw_data`` is either the compressed arena (a flat list of values where
    digit-only strings point at other slots) or the already expanded object
    returned by the REST API. JSON-encoded strings are decoded on validation;
    strings that do not decode are kept and rejected during analysis.
    """

    id: str
    workflow_id: Optional[str] = None
    status: str = UNKNOWN_STATUS
    finished: bool = False
    started_at: Optional[str] = None
    stopped_at: Optional[str] = None
    raw_data: Any = None

    @field_validator("id", "workflow_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or UNKNOWN_STATUS

    @field_validator("finished", mode="before")
    @classmethod
    def _default_finished(cls, value: Any) -> Any:
        return bool(value)

    @field_validator("started_at", "stopped_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return _timestamp_to_str(value)

    @field_validator("raw_data", mode="before")
    @classmethod
    def _decode_raw_data(cls, value: Any) -> Any:
        if not isinstance(value, (str, bytes, bytearray)):
            return value
        try:
            return json.loads(value)
        except ValueError:
            # kept as-is; the trace core reports it as malformed
            return value

    @property
    def is_arena(self) -> bool:
        """``True`` when ``raw_data`` holds the compressed pointer arena."""
        return isinstance(self.raw_data, list)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "ExecutionRecord":
        """Build a record from ``GET /executions/{id}?includeData=true``."""
        return cls(
            id=payload["id"],
            workflow_id=payload.get("workflowId"),
            status=payload.get("status"),
            finished=payload.get("finished"),
            started_at=payload.get("startedAt"),
            stopped_at=payload.get("stoppedAt"),
            raw_data=payload.get("data"),
        )

    @classmethod
    def from_database_row(cls, row: Mapping[str, Any]) -> "ExecutionRecord":
        """Build a record from a joined ``execution_entity``/``execution_data`` row."""
        return cls(
            id=row["id"],
            workflow_id=row.get("workflowId"),
            status=row.get("status"),
            finished=row.get("finished"),
            started_at=row.get("startedAt"),
            stopped_at=row.get("stoppedAt"),
            raw_data=row.get("data"),
        )


class NodeExecutionRecord(BaseModel):
    """Resolved view of a single node's first run."""

    node_name: str
    start_time: int = 0
    execution_time: int = 0
    execution_status: str = DEFAULT_EXECUTION_STATUS
    input: Any = None
    output: Any = None
    input_reason: Optional[str] = None
    output_reason: Optional[str] = None


class NotFound(BaseModel):
    """A node that never ran or carries no execution data."""

    node_name: str
    reason: str


class FlowStep(BaseModel):
    step: int
    node_name: str
    input: Any = None
    output: Any = None
    execution_time_ms: int = 0
    execution_status: str = DEFAULT_EXECUTION_STATUS
    goes_to: str


class ExecutionInfo(BaseModel):
    execution_id: str
    workflow_id: Optional[str] = None
    status: str = UNKNOWN_STATUS
    finished: bool = False
    started_at: str = UNKNOWN_STATUS
    stopped_at: str = UNKNOWN_STATUS
    total_nodes: int = 0
    total_execution_time_ms: int = 0
    success_nodes: int = 0
    error_nodes: int = 0
    other_nodes: int = 0


class ExecutionFlow(BaseModel):
    """Ordered, fully resolved node-by-node trace of one execution."""

    execution_info: ExecutionInfo
    data_flow: list[FlowStep] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Outcome of analyzing one execution.

    Failures are carried as data so batch callers can keep going.
    """

    execution_id: str
    ok: bool
    flow: Optional[ExecutionFlow] = None
    error_type: Optional[str] = None
    error: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    persisted_steps: Optional[int] = None

    @classmethod
    def failure(cls, execution_id: str, exc: BaseException) -> "AnalysisResult":
        return cls(
            execution_id=execution_id,
            ok=False,
            error_type=type(exc).__name__,
            error=str(exc),
        )
