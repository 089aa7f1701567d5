"""Execution coordinator driving workflow runs in background tasks."""

from __future__ import annotations

import asyncio
import logging
import uuid
from functools import partial
from typing import Any, Dict, Optional

from .config import ExecutionConfig, StepflowConfig, load_config
from .errors import LoadError, NotFoundError, StepExecutionError, ValidationError
from .events import (
    STEP_FAILED,
    STEP_FINISHED,
    STEP_STARTED,
    WORKFLOW_COMPLETED,
    WORKFLOW_FAILED,
    WORKFLOW_STARTED,
    EventBus,
    Listener,
    WorkflowEvent,
)
from .models import ExecutionError, ExecutionRecord, ExecutionStatus
from .registry import WorkflowRegistry
from .steps import LoadedStep, StepLoader
from .store import (
    ExecutionStore,
    InMemoryExecutionStore,
    get_execution_store,
    release_execution_store,
)
from .utils import retry

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal workflow engine error"


def _mark_running(record: ExecutionRecord) -> None:
    record.transition(ExecutionStatus.RUNNING)


def _mark_succeeded(record: ExecutionRecord) -> None:
    record.transition(ExecutionStatus.SUCCEEDED)


def _mark_failed(error: ExecutionError, record: ExecutionRecord) -> None:
    record.mark_failed(error)


def _record_attempt(index: int, attempt: int, record: ExecutionRecord) -> None:
    record.attempts[index] = attempt


def _advance(index: int, data: Any, record: ExecutionRecord) -> None:
    record.current_data = data
    record.current_step_index = index + 1


class ExecutionCoordinator:
    """Starts workflow executions and drives them step by step.

    ``start`` returns as soon as the execution record exists; the steps run
    in an ``asyncio`` task owned by the coordinator. Everything that happens
    during the run is recorded on the execution record and never raised to
    the caller of ``start``.
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        loader: StepLoader,
        store: ExecutionStore | None = None,
        events: EventBus | None = None,
        config: ExecutionConfig | None = None,
    ) -> None:
        self.registry = registry
        self.loader = loader
        self.store = store if store is not None else InMemoryExecutionStore()
        self.events = events or EventBus()
        self.config = config or ExecutionConfig()
        self._tasks: Dict[str, asyncio.Task] = {}

    def subscribe(self, listener: Listener):
        """Receive lifecycle events; returns an unsubscribe function."""
        return self.events.subscribe(listener)

    # ------------------------------------------------------------------
    # Public API
    async def start(self, workflow_name: str, initial_data: Any = None) -> str:
        """Begin executing ``workflow_name`` against ``initial_data``.

        Returns:
            The new execution id.

        Raises:
            ValidationError: If ``workflow_name`` is empty.
            NotFoundError: If the workflow is not defined. No record is
                created in that case.
            InternalError: If ``initial_data`` cannot be stored.
        """
        if not workflow_name or not str(workflow_name).strip():
            raise ValidationError("Missing workflow name")
        try:
            steps = self.registry.snapshot(workflow_name)
        except NotFoundError as e:
            logger.warning(f"Cannot start workflow '{workflow_name}': not defined")
            await self.events.emit(
                WorkflowEvent(name=WORKFLOW_FAILED, workflow_name=workflow_name, error=str(e))
            )
            raise
        return await self._launch(workflow_name, steps, initial_data)

    async def status(self, execution_id: str) -> ExecutionRecord:
        record = await self.store.get(execution_id)
        if record is None:
            raise NotFoundError(f"Execution '{execution_id}' not found.")
        return record

    async def wait(self, execution_id: str, timeout: Optional[float] = None) -> ExecutionRecord:
        """Wait for the execution to finish and return its final record.

        A timeout only stops waiting; the execution keeps running.
        """
        task = self._tasks.get(execution_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return await self.status(execution_id)

    async def retry(self, execution_id: str) -> str:
        """Re-run a failed execution from its own snapshot and input.

        Returns:
            The id of the new execution.
        """
        record = await self.status(execution_id)
        if record.status is not ExecutionStatus.FAILED:
            raise ValidationError(
                f"Execution '{execution_id}' is {record.status.value}; only failed executions can be retried"
            )
        return await self._launch(
            record.workflow_name,
            list(record.steps_snapshot),
            record.input_data,
            retry_of=execution_id,
        )

    async def list_executions(self, workflow_name: Optional[str] = None) -> list[ExecutionRecord]:
        records = await self.store.list_executions()
        if workflow_name is not None:
            records = [r for r in records if r.workflow_name == workflow_name]
        return records

    async def close(self) -> None:
        """Wait for every in-flight execution to finish, then close the store."""
        pending = list(self._tasks.values())
        if pending:
            logger.info(f"Waiting for {len(pending)} running execution(s)")
            await asyncio.gather(*pending, return_exceptions=True)
        release_execution_store(self.store)

    # ------------------------------------------------------------------
    # Execution
    async def _launch(
        self,
        workflow_name: str,
        steps: list[str],
        initial_data: Any,
        retry_of: Optional[str] = None,
    ) -> str:
        execution_id = str(uuid.uuid4())
        record = ExecutionRecord(
            execution_id=execution_id,
            workflow_name=workflow_name,
            steps_snapshot=steps,
            input_data=initial_data,
            current_data=initial_data,
            attempts=[0] * len(steps),
            retry_of=retry_of,
        )
        await self.store.create(record)

        task = asyncio.create_task(self.run(execution_id), name=f"stepflow-{execution_id}")
        self._tasks[execution_id] = task
        task.add_done_callback(partial(self._on_task_done, execution_id))

        logger.info(f"Started execution {execution_id} of workflow '{workflow_name}'")
        return execution_id

    async def run(self, execution_id: str) -> None:
        """Drive one execution to a terminal state."""
        try:
            await self._run(execution_id)
        except asyncio.CancelledError:
            await self._fail_internal(execution_id)
            raise
        except Exception as e:
            logger.exception(f"Execution {execution_id} crashed: {e}")
            await self._fail_internal(execution_id)

    async def _run(self, execution_id: str) -> None:
        record = await self.store.update(execution_id, _mark_running)
        workflow_name = record.workflow_name
        data = record.current_data
        await self._emit(WORKFLOW_STARTED, record, data=data)

        for index, step_ref in enumerate(record.steps_snapshot):
            await self._emit(
                STEP_STARTED, record, step_index=index, step_ref=step_ref, data=data
            )
            try:
                unit = await asyncio.to_thread(self.loader.resolve, step_ref)
            except LoadError as e:
                await self._fail(
                    record,
                    ExecutionError(kind="load", message=str(e), step_index=index, step_ref=step_ref),
                )
                return

            try:
                data = await self._apply(execution_id, index, unit, data)
            except StepExecutionError as e:
                await self._fail(
                    record,
                    ExecutionError(kind="step", message=str(e), step_index=index, step_ref=step_ref),
                )
                return

            await self.store.update(execution_id, partial(_advance, index, data))
            await self._emit(
                STEP_FINISHED, record, step_index=index, step_ref=step_ref, data=data
            )

        await self.store.update(execution_id, _mark_succeeded)
        logger.info(f"Execution {execution_id} of workflow '{workflow_name}' succeeded")
        await self._emit(WORKFLOW_COMPLETED, record, data=data)

    async def _apply(self, execution_id: str, index: int, unit: LoadedStep, data: Any) -> Any:
        attempt = 0
        while True:
            attempt += 1
            await self.store.update(execution_id, partial(_record_attempt, index, attempt))
            try:
                return await unit.apply(data)
            except StepExecutionError as e:
                if attempt > self.config.step_retry_limit:
                    raise
                logger.warning(
                    f"Step {index} ({unit.step_ref}) of execution {execution_id} "
                    f"failed on attempt {attempt}: {e}; retrying"
                )
                await retry.schedule_retry(
                    attempt,
                    base=self.config.retry_backoff_base,
                    jitter=self.config.retry_backoff_jitter,
                )

    async def _fail(self, record: ExecutionRecord, error: ExecutionError) -> None:
        await self.store.update(record.execution_id, partial(_mark_failed, error))
        logger.warning(
            f"Execution {record.execution_id} of workflow '{record.workflow_name}' "
            f"failed at step {error.step_index} ({error.step_ref}): {error.message}"
        )
        await self._emit(
            STEP_FAILED,
            record,
            step_index=error.step_index,
            step_ref=error.step_ref,
            error=error.message,
        )
        await self._emit(WORKFLOW_FAILED, record, step_index=error.step_index, error=error.message)

    async def _fail_internal(self, execution_id: str) -> None:
        try:
            record = await self.store.get(execution_id)
            if record is None or record.is_terminal:
                return
            error = ExecutionError(
                kind="internal",
                message=INTERNAL_ERROR_MESSAGE,
                step_index=record.current_step_index if record.status is ExecutionStatus.RUNNING else None,
            )
            await self.store.update(execution_id, partial(_mark_failed, error))
            await self._emit(WORKFLOW_FAILED, record, error=INTERNAL_ERROR_MESSAGE)
        except Exception:
            logger.exception(f"Could not record failure of execution {execution_id}")

    async def _emit(self, name: str, record: ExecutionRecord, **fields: Any) -> None:
        await self.events.emit(
            WorkflowEvent(
                name=name,
                workflow_name=record.workflow_name,
                execution_id=record.execution_id,
                **fields,
            )
        )

    def _on_task_done(self, execution_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(execution_id, None)
        if task.cancelled():
            logger.warning(f"Execution task {execution_id} was cancelled before finishing")


async def build_coordinator(
    config: Optional[StepflowConfig] = None,
    store: Optional[ExecutionStore] = None,
) -> ExecutionCoordinator:
    """Assemble registry, loader, store and coordinator from configuration.

    Workflows listed under ``workflows`` in the configuration are defined
    before the coordinator is returned.
    """
    config = config or load_config()
    events = EventBus()
    registry = WorkflowRegistry(events=events)
    await registry.load_definitions(config.workflows)
    loader = StepLoader(
        base_path=config.steps.base_path,
        run_sync_in_thread=config.steps.run_sync_in_thread,
    )
    return ExecutionCoordinator(
        registry,
        loader,
        store=store if store is not None else get_execution_store(config=config),
        events=events,
        config=config.execution,
    )
