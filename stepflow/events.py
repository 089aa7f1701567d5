"""Lifecycle events emitted while defining and running workflows."""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Union

from pydantic import BaseModel, Field

from .models import utcnow

logger = logging.getLogger(__name__)

WORKFLOW_DEFINED = "workflow.defined"
WORKFLOW_STARTED = "workflow.started"
WORKFLOW_COMPLETED = "workflow.completed"
WORKFLOW_FAILED = "workflow.failed"
STEP_STARTED = "step.started"
STEP_FINISHED = "step.finished"
STEP_FAILED = "step.failed"


class WorkflowEvent(BaseModel):
    """A single lifecycle notification."""

    name: str
    workflow_name: str
    execution_id: Optional[str] = None
    step_index: Optional[int] = None
    step_ref: Optional[str] = None
    data: Any = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


Listener = Callable[[WorkflowEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Fan out events to subscribed listeners.

    Listener failures are logged and never interrupt the emitter.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def emit(self, event: WorkflowEvent) -> None:
        logger.debug(f"Emitting {event.name} for workflow={event.workflow_name}")
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Listener {listener!r} failed handling {event.name}")
