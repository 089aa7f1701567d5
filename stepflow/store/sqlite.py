"""SQLite implementation of the execution store."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from ..errors import InternalError, NotFoundError
from ..models import ExecutionRecord
from .base import ExecutionStore, Mutator


class SQLiteExecutionStore(ExecutionStore):
    """Persist execution records as JSON documents using SQLite.

    Threaded data must be JSON serializable.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                execution_id TEXT PRIMARY KEY,
                workflow_name TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                record TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    @staticmethod
    def _dump(record: ExecutionRecord) -> str:
        try:
            return record.model_dump_json()
        except ValueError as e:
            raise InternalError(
                detail=f"Execution {record.execution_id} holds non-JSON data: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Store API
    async def create(self, record: ExecutionRecord) -> None:
        try:
            await asyncio.to_thread(
                self._execute,
                "INSERT INTO executions (execution_id, workflow_name, status, created_at, record) VALUES (?, ?, ?, ?, ?)",
                record.execution_id,
                record.workflow_name,
                record.status.value,
                record.created_at.isoformat(),
                self._dump(record),
            )
        except sqlite3.IntegrityError as e:
            raise InternalError(detail=f"Duplicate execution id {record.execution_id}") from e

    async def update(self, execution_id: str, mutator: Mutator) -> ExecutionRecord:
        record = await self.get(execution_id)
        if record is None:
            raise NotFoundError(f"Execution '{execution_id}' not found.")
        mutator(record)
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET status = ?, record = ? WHERE execution_id = ?",
            record.status.value,
            self._dump(record),
            execution_id,
        )
        return record

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT record FROM executions WHERE execution_id = ?",
            execution_id,
        )
        if not row:
            return None
        return ExecutionRecord.model_validate_json(row["record"])

    async def list_executions(self) -> list[ExecutionRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT record FROM executions ORDER BY created_at",
        )
        return [ExecutionRecord.model_validate_json(row["record"]) for row in rows]

    def close(self) -> None:
        self._conn.close()
