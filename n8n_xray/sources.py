"""Adapters that deliver fully materialized execution records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import asyncpg
from pydantic import ValidationError

from .client import N8nApiClient
from .config import XrayConfig
from .contracts import ExecutionRecord
from .errors import N8nApiError, UpstreamFetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchedExecution:
    """An execution record together with its workflow document, if known."""

    record: ExecutionRecord
    workflow_data: Optional[Dict[str, Any]] = None


def _build_record(builder, payload: Any, execution_id: str) -> ExecutionRecord:
    try:
        return builder(payload)
    except (KeyError, TypeError, AttributeError, ValidationError) as exc:
        raise UpstreamFetchError(
            f"Execution {execution_id} has an unexpected shape: {exc}"
        ) from exc


class ExecutionSource(Protocol):
    async def fetch(self, execution_id: str) -> FetchedExecution:
        """Retrieve one execution, raising ``UpstreamFetchError`` on failure."""


class ApiExecutionSource:
    """Fetch executions from ``GET /executions/{id}?includeData=true``."""

    def __init__(self, client: N8nApiClient) -> None:
        self._client = client

    async def fetch(self, execution_id: str) -> FetchedExecution:
        payload = await self._client.get_execution(execution_id, include_data=True)
        record = _build_record(ExecutionRecord.from_api, payload, execution_id)
        workflow_data = payload.get("workflowData")
        if workflow_data is None and record.workflow_id:
            try:
                workflow_data = await self._client.get_workflow(record.workflow_id)
            except N8nApiError as exc:
                logger.warning(
                    f"Workflow {record.workflow_id} unavailable for execution "
                    f"{execution_id}: {exc}"
                )
        return FetchedExecution(record=record, workflow_data=workflow_data)


class DatabaseExecutionSource:
    """Read executions straight from the platform's PostgreSQL database."""

    QUERY = """
        SELECT e.id, e."workflowId", e.status, e.finished, e."startedAt",
               e."stoppedAt", d.data, d."workflowData"
        FROM execution_entity e
        JOIN execution_data d ON d."executionId" = e.id
        WHERE e.id = $1
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    async def fetch(self, execution_id: str) -> FetchedExecution:
        try:
            numeric_id = int(execution_id)
        except ValueError:
            raise UpstreamFetchError(f"Invalid execution id {execution_id!r}") from None

        try:
            conn = await asyncpg.connect(self._dsn)
        except (OSError, asyncpg.PostgresError) as exc:
            raise UpstreamFetchError(f"Cannot connect to n8n database: {exc}") from exc
        try:
            row = await conn.fetchrow(self.QUERY, numeric_id)
        except asyncpg.PostgresError as exc:
            raise UpstreamFetchError(f"Query for execution {execution_id} failed: {exc}") from exc
        finally:
            await conn.close()

        if row is None:
            raise UpstreamFetchError(f"No execution data for execution {execution_id}")
        row = dict(row)
        workflow_data = row.get("workflowData")
        if isinstance(workflow_data, str):
            try:
                workflow_data = json.loads(workflow_data)
            except ValueError:
                logger.warning(f"Workflow document of execution {execution_id} is not valid JSON")
                workflow_data = None
        return FetchedExecution(
            record=_build_record(ExecutionRecord.from_database_row, row, execution_id),
            workflow_data=workflow_data,
        )


def load_execution_file(path: str | Path) -> FetchedExecution:
    """Load an execution previously saved from the REST API.

    Raises:
        UpstreamFetchError: The file is not JSON or not an execution document.
    """
    with open(path, encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except ValueError as exc:
            raise UpstreamFetchError(f"{path} is not valid JSON: {exc}") from exc
    record = _build_record(ExecutionRecord.from_api, payload, str(path))
    return FetchedExecution(record=record, workflow_data=payload.get("workflowData"))


def get_source(config: XrayConfig, client: Optional[N8nApiClient] = None) -> ExecutionSource:
    """Factory returning the execution source selected in ``config``."""
    if config.source == "database":
        if not config.n8n_database_url:
            raise ValueError("source 'database' requires n8n_database_url")
        return DatabaseExecutionSource(config.n8n_database_url)
    return ApiExecutionSource(client or N8nApiClient(config.n8n))
