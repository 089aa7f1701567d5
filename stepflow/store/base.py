"""Store abstraction for execution records."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from ..models import ExecutionRecord

Mutator = Callable[[ExecutionRecord], None]


class ExecutionStore(Protocol):
    """Protocol for execution record backends.

    Only the task that owns an execution calls :meth:`update` for it, while
    any number of readers may call :meth:`get` concurrently. ``get`` must
    return a copy that later updates cannot change.
    """

    async def create(self, record: ExecutionRecord) -> None:
        """Persist a new record. Duplicate ids are an internal error."""

    async def update(self, execution_id: str, mutator: Mutator) -> ExecutionRecord:
        """Apply ``mutator`` to the stored record and persist the result."""

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        """Retrieve a copy of the record, or ``None``."""

    async def list_executions(self) -> list[ExecutionRecord]:
        """Return copies of all stored records."""
