"""Exception types raised while fetching and analyzing executions."""

from __future__ import annotations

from typing import Optional


class XrayError(Exception):
    """Base class for all n8n-xray errors."""


class MalformedTraceError(XrayError):
    """The execution arena is structurally invalid or contains a pointer cycle."""


class NoRunDataError(XrayError):
    """The execution record carries no runData section at all."""


class UpstreamFetchError(XrayError):
    """Retrieving data from the automation platform failed."""


class N8nApiError(UpstreamFetchError):
    """Error response or transport failure talking to the n8n REST API."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"HTTP {self.status_code}: {self.message}"


class ExecutionNotFoundError(N8nApiError):
    """The requested execution or workflow does not exist."""


class IdentifierResolutionWarning(UserWarning):
    """A node name could not be mapped to a stable node id."""

    def __init__(self, node_name: Optional[str], reason: str) -> None:
        super().__init__(f"{node_name}: {reason}" if node_name else reason)
        self.node_name = node_name
        self.reason = reason
