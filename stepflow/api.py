"""HTTP adapter for the workflow engine.

Endpoints:
    POST /api/workflow/defineworkflow                      Define or overwrite a workflow
    POST /api/workflow/start                               Start an execution, returns its id
    GET  /api/workflow/executions                          List executions
    GET  /api/workflow/executions/{execution_id}           Poll execution status
    POST /api/workflow/executions/{execution_id}/retry     Re-run a failed execution
    GET  /api/workflow/workflows                           List workflow definitions
    GET  /api/workflow/status                              Service heartbeat
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from .config import StepflowConfig
from .constants import API_PREFIX, API_RUNNING_MESSAGE
from .coordinator import ExecutionCoordinator, build_coordinator
from .errors import InternalError, NotFoundError, ValidationError, WorkflowError
from .models import ExecutionRecord, WorkflowDefinition

logger = logging.getLogger(__name__)

router = APIRouter(prefix=API_PREFIX, tags=["workflow"])


class DefineWorkflowRequest(BaseModel):
    name: Optional[str] = None
    steps: Optional[list[str]] = None


class StartWorkflowRequest(BaseModel):
    name: Optional[str] = None
    data: Any = None


class WorkflowIdResponse(BaseModel):
    workflow_id: str = Field(serialization_alias="workflowId")


def get_coordinator(request: Request) -> ExecutionCoordinator:
    return request.app.state.coordinator


def _to_http(error: WorkflowError) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=f"Bad Request: {error}")
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InternalError) and error.detail:
        logger.error(f"Internal error: {error.detail}")
    return HTTPException(status_code=500, detail="Internal workflow engine error")


@router.post("/defineworkflow", response_model=WorkflowIdResponse)
async def define_workflow(
    body: DefineWorkflowRequest,
    coordinator: ExecutionCoordinator = Depends(get_coordinator),
):
    """Define a workflow, replacing any previous definition with the same name."""
    if not body.name:
        raise HTTPException(status_code=400, detail="Bad Request: Missing workflow name")
    try:
        workflow_id = await coordinator.registry.define(body.name, body.steps)
    except WorkflowError as e:
        raise _to_http(e)
    return WorkflowIdResponse(workflow_id=workflow_id)


@router.post("/start", response_model=WorkflowIdResponse)
async def start_workflow(
    body: StartWorkflowRequest,
    coordinator: ExecutionCoordinator = Depends(get_coordinator),
):
    """Start executing a workflow.

    Returns immediately with the execution id; poll
    ``/executions/{execution_id}`` for the outcome.
    """
    if not body.name:
        raise HTTPException(status_code=400, detail="Bad Request: Missing workflow name")
    try:
        execution_id = await coordinator.start(body.name, body.data)
    except WorkflowError as e:
        raise _to_http(e)
    return WorkflowIdResponse(workflow_id=execution_id)


@router.get("/executions", response_model=list[ExecutionRecord])
async def list_executions(
    workflow: Optional[str] = Query(None, description="Filter by workflow name"),
    coordinator: ExecutionCoordinator = Depends(get_coordinator),
):
    return await coordinator.list_executions(workflow)


@router.get("/executions/{execution_id}", response_model=ExecutionRecord)
async def get_execution(
    execution_id: str,
    coordinator: ExecutionCoordinator = Depends(get_coordinator),
):
    try:
        return await coordinator.status(execution_id)
    except WorkflowError as e:
        raise _to_http(e)


@router.post("/executions/{execution_id}/retry", response_model=WorkflowIdResponse)
async def retry_execution(
    execution_id: str,
    coordinator: ExecutionCoordinator = Depends(get_coordinator),
):
    try:
        new_id = await coordinator.retry(execution_id)
    except WorkflowError as e:
        raise _to_http(e)
    return WorkflowIdResponse(workflow_id=new_id)


@router.get("/workflows", response_model=list[WorkflowDefinition])
async def list_workflows(coordinator: ExecutionCoordinator = Depends(get_coordinator)):
    return coordinator.registry.list_workflows()


@router.get("/status")
async def api_status():
    return API_RUNNING_MESSAGE


def create_app(
    coordinator: Optional[ExecutionCoordinator] = None,
    config: Optional[StepflowConfig] = None,
) -> FastAPI:
    """Build the FastAPI application.

    When no coordinator is passed one is built from ``config`` at startup.
    Running executions are awaited on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if coordinator is None:
            app.state.coordinator = await build_coordinator(config)
        else:
            app.state.coordinator = coordinator
        logger.info(f"Loaded {len(app.state.coordinator.registry)} workflow(s)")
        yield
        await app.state.coordinator.close()

    app = FastAPI(title="stepflow", lifespan=lifespan)
    app.include_router(router)
    return app
