"""stepflow: sequential workflow definition and execution engine."""

from .config import StepflowConfig, load_config
from .coordinator import ExecutionCoordinator, build_coordinator
from .errors import (
    InternalError,
    LoadError,
    NotFoundError,
    StepExecutionError,
    ValidationError,
    WorkflowError,
)
from .events import EventBus, WorkflowEvent
from .models import ExecutionError, ExecutionRecord, ExecutionStatus, WorkflowDefinition
from .registry import WorkflowRegistry
from .steps import Step, StepLoader
from .store import get_execution_store

__version__ = "0.1.0"
__all__ = [
    "EventBus",
    "ExecutionCoordinator",
    "ExecutionError",
    "ExecutionRecord",
    "ExecutionStatus",
    "InternalError",
    "LoadError",
    "NotFoundError",
    "Step",
    "StepExecutionError",
    "StepLoader",
    "StepflowConfig",
    "ValidationError",
    "WorkflowDefinition",
    "WorkflowError",
    "WorkflowEvent",
    "WorkflowRegistry",
    "build_coordinator",
    "get_execution_store",
    "load_config",
]
