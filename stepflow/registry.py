"""Named workflow definitions with snapshot isolation."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, ValidationError
from .events import WORKFLOW_DEFINED, EventBus, WorkflowEvent
from .models import WorkflowDefinition

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """Store of workflow definitions keyed by name.

    Definitions are immutable and replaced wholesale on redefinition, so a
    reader always sees either the old or the new complete definition and
    never needs the write lock. Last writer wins.
    """

    def __init__(self, events: Optional[EventBus] = None) -> None:
        self._definitions: Dict[str, WorkflowDefinition] = {}
        self._write_lock = asyncio.Lock()
        self._events = events

    async def define(self, name: str, steps: Iterable[str] | None) -> str:
        """Store or overwrite the workflow ``name``.

        Returns:
            The workflow identifier, which is the name itself.

        Raises:
            ValidationError: If ``name`` or ``steps`` is empty. The registry
                is left untouched.
        """
        if isinstance(steps, str):
            raise ValidationError("steps must be a list of step references")
        try:
            definition = WorkflowDefinition(name=name, steps=tuple(steps or ()))
        except (PydanticValidationError, TypeError) as e:
            raise ValidationError(f"Invalid workflow '{name}': {e}") from e

        async with self._write_lock:
            replaced = name in self._definitions
            self._definitions[name] = definition

        logger.info(
            f"{'Redefined' if replaced else 'Defined'} workflow '{name}' "
            f"with {len(definition.steps)} step(s)"
        )
        if self._events is not None:
            await self._events.emit(
                WorkflowEvent(
                    name=WORKFLOW_DEFINED,
                    workflow_name=name,
                    data=list(definition.steps),
                )
            )
        return name

    def get(self, name: str) -> WorkflowDefinition:
        definition = self._definitions.get(name)
        if definition is None:
            raise NotFoundError(f"Workflow '{name}' not found.")
        return definition

    def snapshot(self, name: str) -> list[str]:
        """Return an independent copy of the steps of ``name``."""
        return list(self.get(name).steps)

    def list_workflows(self) -> list[WorkflowDefinition]:
        return sorted(self._definitions.values(), key=lambda d: d.name)

    async def remove(self, name: str) -> None:
        async with self._write_lock:
            if self._definitions.pop(name, None) is None:
                raise NotFoundError(f"Workflow '{name}' not found.")
        logger.info(f"Removed workflow '{name}'")

    async def load_definitions(self, workflows: Mapping[str, Iterable[str]]) -> None:
        """Define every workflow in ``workflows`` (e.g. from configuration)."""
        for name, steps in workflows.items():
            await self.define(name, steps)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
