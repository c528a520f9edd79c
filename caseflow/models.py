"""Runtime data models for workflow instances and execution results."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class WorkflowStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            WorkflowStatus.COMPLETED,
            WorkflowStatus.FAILED,
            WorkflowStatus.CANCELLED,
        )


class ActivityStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class ExecutionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class RuntimeOverride(BaseModel):
    """Operator-supplied assignment override for a single activity."""

    assignee: Optional[str] = None
    assignee_group: Optional[str] = None
    strategies: List[str] = Field(default_factory=list)
    override_properties: Dict[str, Any] = Field(default_factory=dict)
    reason: Optional[str] = None
    override_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def has_assignment_override(self) -> bool:
        return bool(self.assignee or self.assignee_group or self.strategies)


class ActivityExecution(BaseModel):
    """Audit record of one execution of an activity within an instance."""

    id: str = Field(default_factory=new_id)
    activity_id: str
    activity_type: str
    status: ExecutionStatus = ExecutionStatus.IN_PROGRESS
    assigned_to: Optional[str] = None
    completed_by: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class WorkflowInstance(BaseModel):
    """Mutable state of one occurrence of a workflow schema."""

    id: str = Field(default_factory=new_id)
    schema_id: str
    name: str = ""
    correlation_id: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.CREATED
    current_activity_id: Optional[str] = None
    current_assignee: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    runtime_overrides: Dict[str, RuntimeOverride] = Field(default_factory=dict)
    executions: List[ActivityExecution] = Field(default_factory=list)
    started_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    status_reason: Optional[str] = None
    error_message: Optional[str] = None

    def open_execution(self, activity_id: str) -> Optional[ActivityExecution]:
        """Return the in-progress execution for ``activity_id`` if any."""
        for execution in reversed(self.executions):
            if (
                execution.activity_id == activity_id
                and execution.status == ExecutionStatus.IN_PROGRESS
            ):
                return execution
        return None

    def touch(self) -> None:
        self.updated_at = utcnow()


class ActivityResult(BaseModel):
    """Outcome reported by an activity implementation."""

    status: ActivityStatus
    output: Dict[str, Any] = Field(default_factory=dict)
    decision: Optional[str] = None
    error: Optional[str] = None
    assignee: Optional[str] = None

    @classmethod
    def completed(
        cls, output: Optional[Dict[str, Any]] = None, decision: Optional[str] = None
    ) -> "ActivityResult":
        return cls(status=ActivityStatus.COMPLETED, output=output or {}, decision=decision)

    @classmethod
    def pending(
        cls, output: Optional[Dict[str, Any]] = None, assignee: Optional[str] = None
    ) -> "ActivityResult":
        return cls(status=ActivityStatus.PENDING, output=output or {}, assignee=assignee)

    @classmethod
    def failed(cls, error: str) -> "ActivityResult":
        return cls(status=ActivityStatus.FAILED, error=error)


@dataclass
class ActivityContext:
    """Per-invocation view of an instance handed to an activity.

    Built fresh for every execute/resume call and never persisted.
    """

    activity_id: str
    activity_type: str
    instance: WorkflowInstance
    activity_name: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)
    config: Optional[BaseModel] = None
    runtime_override: Optional[RuntimeOverride] = None

    @property
    def variables(self) -> Dict[str, Any]:
        return self.instance.variables

    @property
    def current_assignee(self) -> Optional[str]:
        return self.instance.current_assignee


class Checkpoint(BaseModel):
    """Durable snapshot written at terminal and strategic points."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    instance_id: str
    status: WorkflowStatus
    reason: str
    created_at: datetime = Field(default_factory=utcnow)
    snapshot: Dict[str, Any] = Field(default_factory=dict)


class WorkflowExecutionResult(BaseModel):
    """What Start/Execute/Resume hand back to the caller."""

    status: ActivityStatus
    instance: WorkflowInstance
    next_activity_id: Optional[str] = None
    requires_external_completion: bool = False
    error_message: Optional[str] = None
    failure_kind: Optional[str] = None


__all__ = [
    "ActivityContext",
    "ActivityExecution",
    "ActivityResult",
    "ActivityStatus",
    "Checkpoint",
    "ExecutionStatus",
    "RuntimeOverride",
    "WorkflowExecutionResult",
    "WorkflowInstance",
    "WorkflowStatus",
]
