"""Analysis service tying execution sources, the trace core and the sinks together."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from .backtrace import BacktraceWriter
from .constants import DEFAULT_OUTPUT_INDEX
from .contracts import AnalysisResult, ExecutionRecord
from .errors import MalformedTraceError, NoRunDataError, UpstreamFetchError
from .persistence import BacktraceRepository, get_repository
from .sources import ExecutionSource
from .summary import ExecutionSummary, summarize_execution
from .trace import extract_node, locate_run_data, reconstruct
from .trace.extractor import NodeLookup

logger = logging.getLogger(__name__)


class OutputMode(str, Enum):
    REPORT = "report"
    PERSIST = "persist"


class ExecutionAnalyzer:
    """Analyze executions and emit reports or stored backtraces.

    Trace failures (``NoRunDataError``, ``MalformedTraceError``) come back as
    failed :class:`AnalysisResult` objects instead of exceptions, and a failed
    analysis never touches stored backtraces.
    """

    def __init__(
        self,
        source: Optional[ExecutionSource] = None,
        repository: BacktraceRepository | None = None,
    ) -> None:
        self._source = source
        self._repository = repository
        self._writer: BacktraceWriter | None = None

    @property
    def writer(self) -> BacktraceWriter:
        if self._writer is None:
            self._writer = BacktraceWriter(self._repository or get_repository())
        return self._writer

    def _require_source(self) -> ExecutionSource:
        if self._source is None:
            raise ValueError("ExecutionAnalyzer was created without an execution source")
        return self._source

    # ------------------------------------------------------------------
    # Record-level operations (no fetching)
    def analyze_record(self, record: ExecutionRecord) -> AnalysisResult:
        logger.info(f"Analyzing execution {record.id}")
        try:
            flow = reconstruct(record)
        except (NoRunDataError, MalformedTraceError) as exc:
            logger.warning(f"Analysis of execution {record.id} failed: {exc}")
            return AnalysisResult.failure(record.id, exc)
        logger.info(
            f"Execution {record.id}: {flow.execution_info.total_nodes} steps reconstructed"
        )
        return AnalysisResult(execution_id=record.id, ok=True, flow=flow)

    async def persist_record(
        self,
        record: ExecutionRecord,
        workflow_data: Optional[Mapping[str, Any]] = None,
    ) -> AnalysisResult:
        result = self.analyze_record(record)
        if not result.ok or result.flow is None:
            return result
        outcome = await self.writer.write(result.flow, workflow_data)
        return result.model_copy(
            update={
                "persisted_steps": outcome.rows_written,
                "warnings": [str(w) for w in outcome.warnings],
            }
        )

    # ------------------------------------------------------------------
    # Fetching operations
    async def analyze(
        self, execution_id: str, mode: OutputMode = OutputMode.REPORT
    ) -> AnalysisResult:
        """Fetch and analyze one execution.

        Raises:
            UpstreamFetchError: The execution could not be retrieved.
        """
        fetched = await self._require_source().fetch(execution_id)
        if mode == OutputMode.PERSIST:
            return await self.persist_record(fetched.record, fetched.workflow_data)
        return self.analyze_record(fetched.record)

    async def analyze_many(
        self, execution_ids: Iterable[str], mode: OutputMode = OutputMode.REPORT
    ) -> list[AnalysisResult]:
        """Analyze executions one after another, continuing past failures."""
        results = []
        for execution_id in execution_ids:
            try:
                results.append(await self.analyze(execution_id, mode))
            except UpstreamFetchError as exc:
                logger.warning(f"Could not fetch execution {execution_id}: {exc}")
                results.append(AnalysisResult.failure(execution_id, exc))
        return results

    async def node(
        self,
        execution_id: str,
        node_name: str,
        output_index: int = DEFAULT_OUTPUT_INDEX,
    ) -> NodeLookup:
        fetched = await self._require_source().fetch(execution_id)
        view = locate_run_data(fetched.record.raw_data)
        return extract_node(node_name, view.run_data, view.arena, output_index)

    async def summary(self, execution_id: str) -> ExecutionSummary:
        fetched = await self._require_source().fetch(execution_id)
        return summarize_execution(fetched.record)
