"""Data models for workflow definitions and execution records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InternalError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowDefinition(BaseModel):
    """A named, ordered list of step references."""

    name: str
    steps: Tuple[str, ...]
    defined_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def _ensure_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("workflow name must be a non-empty string")
        return v

    @field_validator("steps")
    @classmethod
    def _ensure_steps(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("workflow must define at least one step")
        for ref in v:
            if not ref or not ref.strip():
                raise ValueError("step references must be non-empty strings")
        return v


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS = {
    ExecutionStatus.PENDING: {ExecutionStatus.RUNNING, ExecutionStatus.FAILED},
    ExecutionStatus.RUNNING: {ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED},
    ExecutionStatus.SUCCEEDED: set(),
    ExecutionStatus.FAILED: set(),
}


class ExecutionError(BaseModel):
    """Failure details recorded on a failed execution."""

    kind: Literal["load", "step", "internal"]
    message: str
    step_index: Optional[int] = None
    step_ref: Optional[str] = None


class ExecutionRecord(BaseModel):
    """Queryable state of one workflow execution."""

    execution_id: str
    workflow_name: str
    steps_snapshot: list[str]
    status: ExecutionStatus = ExecutionStatus.PENDING
    current_step_index: int = 0
    input_data: Any = None
    current_data: Any = None
    error: Optional[ExecutionError] = None
    attempts: list[int] = Field(default_factory=list)
    retry_of: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED)

    @property
    def failing_step(self) -> Optional[int]:
        """Index of the step that failed, if any."""
        return self.error.step_index if self.error else None

    def transition(self, status: ExecutionStatus) -> None:
        """Move to ``status``, refusing reverse or repeated terminal moves."""
        if status not in _TRANSITIONS[self.status]:
            raise InternalError(
                detail=f"Illegal transition {self.status.value} -> {status.value} "
                f"for execution {self.execution_id}"
            )
        self.status = status
        if status is ExecutionStatus.RUNNING:
            self.started_at = utcnow()
        elif status in (ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED):
            self.finished_at = utcnow()

    def mark_failed(self, error: ExecutionError) -> None:
        self.transition(ExecutionStatus.FAILED)
        self.error = error
