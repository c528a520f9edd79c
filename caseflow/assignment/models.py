"""Data models for cascading assignee selection."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import RuntimeOverride, WorkflowInstance


class AssignmentContext(BaseModel):
    """Inputs available to every selection stage and strategy."""

    activity_id: str
    activity_name: str = ""
    instance: WorkflowInstance
    assignee: Optional[str] = None
    assignee_group: Optional[str] = None
    strategies: List[str] = Field(default_factory=list)
    candidates: List[str] = Field(default_factory=list)
    supervisor_id: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    custom_service: Optional[str] = None
    runtime_override: Optional[RuntimeOverride] = None
    escalate_to_admin_pool: bool = False
    admin_pool_id: Optional[str] = None

    @property
    def variables(self) -> Dict[str, Any]:
        return self.instance.variables

    def with_overrides(self, **changes: Any) -> "AssignmentContext":
        """Copy of this context with selected fields replaced."""
        return self.model_copy(update=changes)


class AssignmentResult(BaseModel):
    """Outcome of a single strategy or of the whole cascade."""

    success: bool
    assignee: Optional[str] = None
    strategy: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def assigned(
        cls,
        assignee: str,
        strategy: str,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "AssignmentResult":
        return cls(
            success=True,
            assignee=assignee,
            strategy=strategy,
            reason=reason,
            metadata=metadata or {},
        )

    @classmethod
    def failure(
        cls, error: str, metadata: Optional[Dict[str, Any]] = None
    ) -> "AssignmentResult":
        return cls(success=False, error=error, metadata=metadata or {})


class CustomAssignmentDecision(BaseModel):
    """Answer of a custom assignment service.

    A service declines by leaving ``use_custom_assignment`` false. When it
    accepts, it either names an assignee or redirects the strategies to run
    against a specific group.
    """

    use_custom_assignment: bool = False
    assignee: Optional[str] = None
    group: Optional[str] = None
    strategies: List[str] = Field(default_factory=list)
    properties: Dict[str, Any] = Field(default_factory=dict)
    reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def decline(cls, reason: str) -> "CustomAssignmentDecision":
        return cls(use_custom_assignment=False, reason=reason)
