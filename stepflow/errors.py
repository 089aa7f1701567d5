"""Error taxonomy for workflow definition and execution."""

from __future__ import annotations

from typing import Optional


class WorkflowError(Exception):
    """Base class for all stepflow errors."""


class ValidationError(WorkflowError):
    """Malformed input, e.g. an empty workflow name or step list."""


class NotFoundError(WorkflowError):
    """Unknown workflow name or execution id."""


class LoadError(WorkflowError):
    """A step reference could not be resolved into a usable transform unit."""

    def __init__(self, step_ref: str, reason: str) -> None:
        super().__init__(f"Cannot load step '{step_ref}': {reason}")
        self.step_ref = step_ref
        self.reason = reason


class StepExecutionError(WorkflowError):
    """A resolved transform unit failed while applying to the data.

    The underlying exception is available as ``__cause__``.
    """

    def __init__(self, step_ref: str, message: str) -> None:
        super().__init__(message)
        self.step_ref = step_ref


class InternalError(WorkflowError):
    """Unexpected coordinator or store fault.

    The message is safe to show to callers; details go to the log.
    """

    def __init__(self, message: str = "Internal workflow engine error", detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.detail = detail


__all__ = [
    "WorkflowError",
    "ValidationError",
    "NotFoundError",
    "LoadError",
    "StepExecutionError",
    "InternalError",
]
