"""Async HTTP client for the n8n REST API.

Handles API-key authentication, retries on transient failures and maps
error responses onto :class:`~n8n_xray.errors.N8nApiError`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import N8nConfig, load_config
from .errors import ExecutionNotFoundError, N8nApiError
from .utils.retry import is_retryable_status, schedule_retry

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text


class N8nApiClient:
    """Client for the subset of the n8n public API used for execution analysis."""

    def __init__(
        self,
        config: Optional[N8nConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings. Loaded from configuration when omitted.
            transport: Optional httpx transport, mainly for tests.
        """
        self.config = config or load_config().n8n
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the underlying HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.config.api_key:
                headers["X-N8N-API-KEY"] = self.config.api_key
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "N8nApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            logger.debug(f"n8n API Request: {method} {path}")
            try:
                response = await self.client.request(method, path, **kwargs)
            except httpx.TransportError as exc:
                if attempt >= self.config.max_retries:
                    raise N8nApiError(f"{method} {path} failed: {exc}") from exc
                logger.warning(
                    f"n8n API {method} {path} failed ({exc}); retry {attempt + 1}"
                )
                await schedule_retry(attempt, base=self.config.retry_backoff_base)
                attempt += 1
                continue

            status = response.status_code
            logger.debug(f"n8n API Response: {status} {path}")
            if status == 404:
                raise ExecutionNotFoundError(_error_message(response), status)
            if status >= 400:
                if is_retryable_status(status) and attempt < self.config.max_retries:
                    logger.warning(
                        f"n8n API {method} {path} returned {status}; retry {attempt + 1}"
                    )
                    await schedule_retry(attempt, base=self.config.retry_backoff_base)
                    attempt += 1
                    continue
                raise N8nApiError(_error_message(response), status)
            try:
                return response.json()
            except ValueError as exc:
                raise N8nApiError(f"{method} {path}: invalid JSON response", status) from exc

    async def health_check(self) -> Dict[str, Any]:
        """Verify API connectivity.

        Falls back to listing a single workflow on versions without a health
        endpoint.
        """
        try:
            return await self._request("GET", "/health")
        except N8nApiError:
            await self._request("GET", "/workflows", params={"limit": 1})
            return {"status": "ok"}

    async def get_execution(
        self, execution_id: str, include_data: bool = True
    ) -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"/executions/{execution_id}",
            params={"includeData": "true" if include_data else "false"},
        )

    async def get_workflow(self, workflow_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/workflows/{workflow_id}")

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        limit: int = 20,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List executions, most recent first, without their run data."""
        params: Dict[str, Any] = {"limit": limit, "includeData": "false"}
        if workflow_id:
            params["workflowId"] = workflow_id
        if status:
            params["status"] = status
        payload = await self._request("GET", "/executions", params=params)
        return payload.get("data", [])

    async def latest_execution_id(self, workflow_id: str) -> Optional[str]:
        executions = await self.list_executions(workflow_id=workflow_id, limit=1)
        if not executions:
            return None
        return str(executions[0]["id"])
