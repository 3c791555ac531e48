"""Data models for persisted execution backtraces."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class BacktraceRow(BaseModel):
    """One stored step of an execution flow.

    ``step_index`` is zero-based; ``next_node_name`` is ``None`` on the last step.
    """

    execution_id: str
    step_index: int
    node_uuid: Optional[str] = None
    node_name: str
    input_json: Any = None
    output_json: Any = None
    next_node_uuid: Optional[str] = None
    next_node_name: Optional[str] = None
    created_at: Optional[datetime] = None
