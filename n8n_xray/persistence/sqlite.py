"""SQLite implementation of the backtrace repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from .models import BacktraceRow
from .repository import BacktraceRepository


def _dump(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def _load(value: str | None) -> Any:
    return None if value is None else json.loads(value)


class SQLiteBacktraceRepository(BacktraceRepository):
    """Persist backtraces using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS execution_backtrace (
                    execution_id TEXT NOT NULL,
                    step_index INTEGER NOT NULL,
                    node_uuid TEXT,
                    node_name TEXT NOT NULL,
                    input_json TEXT,
                    output_json TEXT,
                    next_node_uuid TEXT,
                    next_node_name TEXT,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (execution_id, step_index)
                )
                """
            )

    # ------------------------------------------------------------------
    # Helper methods
    def _replace(self, execution_id: str, rows: Sequence[BacktraceRow]) -> None:
        created_at = datetime.now(timezone.utc).isoformat()
        with self._lock, self._conn:
            self._conn.execute(
                "DELETE FROM execution_backtrace WHERE execution_id = ?",
                (execution_id,),
            )
            self._conn.executemany(
                """
                INSERT INTO execution_backtrace (
                    execution_id, step_index, node_uuid, node_name,
                    input_json, output_json, next_node_uuid, next_node_name, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        execution_id,
                        row.step_index,
                        row.node_uuid,
                        row.node_name,
                        _dump(row.input_json),
                        _dump(row.output_json),
                        row.next_node_uuid,
                        row.next_node_name,
                        created_at,
                    )
                    for row in rows
                ],
            )

    def _delete(self, execution_id: str) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "DELETE FROM execution_backtrace WHERE execution_id = ?",
                (execution_id,),
            )
            return cur.rowcount

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    # ------------------------------------------------------------------
    # Repository API
    async def replace_backtrace(
        self, execution_id: str, rows: Sequence[BacktraceRow]
    ) -> None:
        await asyncio.to_thread(self._replace, execution_id, rows)

    async def get_backtrace(self, execution_id: str) -> list[BacktraceRow]:
        rows = await asyncio.to_thread(
            self._fetchall,
            """
            SELECT execution_id, step_index, node_uuid, node_name, input_json,
                   output_json, next_node_uuid, next_node_name, created_at
            FROM execution_backtrace WHERE execution_id = ? ORDER BY step_index
            """,
            execution_id,
        )
        return [
            BacktraceRow(
                execution_id=r["execution_id"],
                step_index=r["step_index"],
                node_uuid=r["node_uuid"],
                node_name=r["node_name"],
                input_json=_load(r["input_json"]),
                output_json=_load(r["output_json"]),
                next_node_uuid=r["next_node_uuid"],
                next_node_name=r["next_node_name"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    async def delete_backtrace(self, execution_id: str) -> int:
        return await asyncio.to_thread(self._delete, execution_id)

    async def list_execution_ids(self) -> list[str]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT DISTINCT execution_id FROM execution_backtrace ORDER BY execution_id",
        )
        return [r["execution_id"] for r in rows]
