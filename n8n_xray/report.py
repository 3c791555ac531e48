"""Serialize analysis results as structured report documents."""

from __future__ import annotations

import json
from typing import Any

from .contracts import AnalysisResult, ExecutionFlow


def render_flow(flow: ExecutionFlow) -> dict[str, Any]:
    """Return the ``execution_info``/``data_flow`` document for ``flow``."""
    return flow.model_dump(mode="json")


def render_failure(result: AnalysisResult) -> dict[str, Any]:
    return {
        "error": result.error,
        "error_type": result.error_type,
        "execution_id": result.execution_id,
    }


def render_result(result: AnalysisResult) -> dict[str, Any]:
    """Render a successful flow, or an explicit error document on failure."""
    if not result.ok or result.flow is None:
        return render_failure(result)
    document = render_flow(result.flow)
    if result.warnings:
        document["warnings"] = list(result.warnings)
    return document


def to_json(document: Any) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)
