"""PostgreSQL implementation of the backtrace repository."""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional, Sequence

import asyncpg

from .models import BacktraceRow
from .repository import BacktraceRepository


def _as_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    return uuid.UUID(value) if value else None


def _from_uuid(value: Optional[uuid.UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def _dump(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value)


def _load(value: Optional[str]) -> Any:
    return None if value is None else json.loads(value)


class PostgresBacktraceRepository(BacktraceRepository):
    """Persist backtraces in ``xray.execution_backtrace`` using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute("CREATE SCHEMA IF NOT EXISTS xray")
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS xray.execution_backtrace (
                execution_id TEXT NOT NULL,
                step_index INTEGER NOT NULL,
                node_uuid UUID,
                node_name TEXT NOT NULL,
                input_json JSONB,
                output_json JSONB,
                next_node_uuid UUID,
                next_node_name TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                PRIMARY KEY (execution_id, step_index)
            )
            """
        )

    # ------------------------------------------------------------------
    async def replace_backtrace(
        self, execution_id: str, rows: Sequence[BacktraceRow]
    ) -> None:
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.execute(
                    "DELETE FROM xray.execution_backtrace WHERE execution_id = $1",
                    execution_id,
                )
                await conn.executemany(
                    """
                    INSERT INTO xray.execution_backtrace (
                        execution_id, step_index, node_uuid, node_name,
                        input_json, output_json, next_node_uuid, next_node_name
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    """,
                    [
                        (
                            execution_id,
                            row.step_index,
                            _as_uuid(row.node_uuid),
                            row.node_name,
                            _dump(row.input_json),
                            _dump(row.output_json),
                            _as_uuid(row.next_node_uuid),
                            row.next_node_name,
                        )
                        for row in rows
                    ],
                )
        finally:
            await conn.close()

    async def get_backtrace(self, execution_id: str) -> list[BacktraceRow]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                """
                SELECT execution_id, step_index, node_uuid, node_name, input_json,
                       output_json, next_node_uuid, next_node_name, created_at
                FROM xray.execution_backtrace
                WHERE execution_id = $1 ORDER BY step_index
                """,
                execution_id,
            )
        finally:
            await conn.close()
        return [
            BacktraceRow(
                execution_id=r["execution_id"],
                step_index=r["step_index"],
                node_uuid=_from_uuid(r["node_uuid"]),
                node_name=r["node_name"],
                input_json=_load(r["input_json"]),
                output_json=_load(r["output_json"]),
                next_node_uuid=_from_uuid(r["next_node_uuid"]),
                next_node_name=r["next_node_name"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    async def delete_backtrace(self, execution_id: str) -> int:
        conn = await self._connect()
        try:
            status = await conn.execute(
                "DELETE FROM xray.execution_backtrace WHERE execution_id = $1",
                execution_id,
            )
        finally:
            await conn.close()
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(status.split()[-1])

    async def list_execution_ids(self) -> list[str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT DISTINCT execution_id FROM xray.execution_backtrace ORDER BY execution_id"
            )
        finally:
            await conn.close()
        return [r["execution_id"] for r in rows]
