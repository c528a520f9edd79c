"""caseflow: Durable workflow orchestration for case-management processes."""

from .activities import ActivityFactory, WorkflowActivity, build_activity_factory
from .assignment import CascadingAssignmentEngine
from .config import CaseflowConfig, load_config
from .contracts import ActivityDefinition, TransitionDefinition, WorkflowSchema, load_schema
from .engine import WorkflowEngine
from .models import (
    ActivityContext,
    ActivityResult,
    ActivityStatus,
    Checkpoint,
    RuntimeOverride,
    WorkflowExecutionResult,
    WorkflowInstance,
    WorkflowStatus,
)
from .persistence import get_repository

__version__ = "0.1.0"
__all__ = [
    "ActivityContext",
    "ActivityDefinition",
    "ActivityFactory",
    "ActivityResult",
    "ActivityStatus",
    "CascadingAssignmentEngine",
    "CaseflowConfig",
    "Checkpoint",
    "RuntimeOverride",
    "TransitionDefinition",
    "WorkflowActivity",
    "WorkflowEngine",
    "WorkflowExecutionResult",
    "WorkflowInstance",
    "WorkflowSchema",
    "WorkflowStatus",
    "build_activity_factory",
    "get_repository",
    "load_config",
    "load_schema",
]
