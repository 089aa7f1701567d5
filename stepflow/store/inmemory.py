"""In-memory implementation of the execution store."""

from __future__ import annotations

from typing import Dict, Optional

from ..errors import InternalError, NotFoundError
from ..models import ExecutionRecord
from .base import ExecutionStore, Mutator


def _copy(record: ExecutionRecord) -> ExecutionRecord:
    try:
        return record.model_copy(deep=True)
    except Exception as e:
        raise InternalError(
            detail=f"Execution {record.execution_id} holds data that cannot be copied: {e}"
        ) from e


class InMemoryExecutionStore(ExecutionStore):
    """Store execution records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.

    Updates are applied to a copy which then replaces the stored record in
    a single assignment, so readers never observe a half-applied mutation.
    A mutation whose result cannot be copied is rejected with
    ``InternalError`` and the stored record is left as it was.
    """

    def __init__(self) -> None:
        self._records: Dict[str, ExecutionRecord] = {}

    async def create(self, record: ExecutionRecord) -> None:
        if record.execution_id in self._records:
            raise InternalError(detail=f"Duplicate execution id {record.execution_id}")
        self._records[record.execution_id] = _copy(record)

    async def update(self, execution_id: str, mutator: Mutator) -> ExecutionRecord:
        current = self._records.get(execution_id)
        if current is None:
            raise NotFoundError(f"Execution '{execution_id}' not found.")
        updated = _copy(current)
        mutator(updated)
        result = _copy(updated)
        self._records[execution_id] = updated
        return result

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        record = self._records.get(execution_id)
        return _copy(record) if record else None

    async def list_executions(self) -> list[ExecutionRecord]:
        return [_copy(r) for r in self._records.values()]
