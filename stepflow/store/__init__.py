"""Execution record stores."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepflowConfig, load_config
from ..constants import DATABASE_URL_ENV_VAR
from .base import ExecutionStore, Mutator
from .inmemory import InMemoryExecutionStore
from .sqlite import SQLiteExecutionStore

_store_instance: ExecutionStore | None = None


def get_execution_store(
    database_url: Optional[str] = None, config: Optional[StepflowConfig] = None
) -> ExecutionStore:
    """Factory function to obtain an execution store.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``STEPFLOW_DATABASE_URL``, or from
    loaded configuration. When no database is configured, an in-memory store
    is returned.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv(DATABASE_URL_ENV_VAR)
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _store_instance = InMemoryExecutionStore()
        return _store_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteExecutionStore(path)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _store_instance


def release_execution_store(store: ExecutionStore) -> None:
    """Close ``store`` if it holds a connection and forget it as the shared instance."""

    global _store_instance
    if _store_instance is store:
        _store_instance = None
    close = getattr(store, "close", None)
    if callable(close):
        close()


__all__ = [
    "ExecutionStore",
    "Mutator",
    "InMemoryExecutionStore",
    "SQLiteExecutionStore",
    "get_execution_store",
    "release_execution_store",
]
