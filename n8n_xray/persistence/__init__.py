"""Persistence layer for execution backtraces."""

from __future__ import annotations

import os
from typing import Optional

from ..config import XrayConfig, load_config
from .inmemory import InMemoryBacktraceRepository
from .models import BacktraceRow
from .repository import BacktraceRepository
from .sqlite import SQLiteBacktraceRepository

_repository_instance: BacktraceRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[XrayConfig] = None
) -> BacktraceRepository:
    """Factory function to obtain a backtrace repository.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``N8N_XRAY_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("N8N_XRAY_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        _repository_instance = InMemoryBacktraceRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteBacktraceRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresBacktraceRepository

        _repository_instance = PostgresBacktraceRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "BacktraceRow",
    "BacktraceRepository",
    "InMemoryBacktraceRepository",
    "SQLiteBacktraceRepository",
    "get_repository",
]
