"""n8n-xray: reconstruct node-by-node data flows of n8n workflow executions."""

from .analyze import ExecutionAnalyzer, OutputMode
from .backtrace import BacktraceWriter
from .client import N8nApiClient
from .contracts import (
    AnalysisResult,
    ExecutionFlow,
    ExecutionRecord,
    FlowStep,
    NodeExecutionRecord,
    NotFound,
)
from .errors import (
    IdentifierResolutionWarning,
    MalformedTraceError,
    NoRunDataError,
    UpstreamFetchError,
)
from .persistence import get_repository
from .trace import extract_node, reconstruct, resolve

__version__ = "0.1.0"
__all__ = [
    "AnalysisResult",
    "BacktraceWriter",
    "ExecutionAnalyzer",
    "ExecutionFlow",
    "ExecutionRecord",
    "FlowStep",
    "IdentifierResolutionWarning",
    "MalformedTraceError",
    "N8nApiClient",
    "NoRunDataError",
    "NodeExecutionRecord",
    "NotFound",
    "OutputMode",
    "UpstreamFetchError",
    "extract_node",
    "get_repository",
    "reconstruct",
    "resolve",
]
