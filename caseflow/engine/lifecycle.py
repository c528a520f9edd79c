"""Workflow instance status transitions."""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional

from ..contracts import WorkflowSchema
from ..exceptions import InvalidStateTransition, WorkflowStateError
from ..models import RuntimeOverride, WorkflowInstance, WorkflowStatus, utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[WorkflowStatus, FrozenSet[WorkflowStatus]] = {
    WorkflowStatus.CREATED: frozenset(
        {WorkflowStatus.RUNNING, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED}
    ),
    WorkflowStatus.RUNNING: frozenset(
        {
            WorkflowStatus.SUSPENDED,
            WorkflowStatus.COMPLETED,
            WorkflowStatus.FAILED,
            WorkflowStatus.CANCELLED,
        }
    ),
    WorkflowStatus.SUSPENDED: frozenset(
        {WorkflowStatus.RUNNING, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED}
    ),
    WorkflowStatus.COMPLETED: frozenset(),
    WorkflowStatus.FAILED: frozenset(),
    WorkflowStatus.CANCELLED: frozenset(),
}


def can_transition(current: WorkflowStatus, target: WorkflowStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class LifecycleManager:
    """Owns every status change applied to a workflow instance.

    Methods mutate the instance in place and never touch persistence.
    """

    def initialize_workflow(
        self,
        schema: WorkflowSchema,
        start_activity_id: str,
        name: str,
        started_by: str,
        initial_variables: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        runtime_overrides: Optional[Dict[str, RuntimeOverride]] = None,
    ) -> WorkflowInstance:
        """Create a running instance positioned at ``start_activity_id``."""
        instance = WorkflowInstance(
            schema_id=schema.id,
            name=name,
            correlation_id=correlation_id,
            started_by=started_by,
            variables={**schema.variables, **(initial_variables or {})},
            runtime_overrides=dict(runtime_overrides or {}),
        )
        self.transition_workflow_state(instance, WorkflowStatus.RUNNING, "Workflow started")
        instance.current_activity_id = start_activity_id
        logger.info(
            f"Initialized workflow instance {instance.id} of schema {schema.id} at {start_activity_id}"
        )
        return instance

    def advance_workflow(self, instance: WorkflowInstance, next_activity_id: str) -> None:
        if instance.status != WorkflowStatus.RUNNING:
            raise WorkflowStateError(
                f"Cannot advance workflow {instance.id} in status {instance.status.value}"
            )
        logger.debug(
            f"Workflow {instance.id} advancing {instance.current_activity_id} -> {next_activity_id}"
        )
        instance.current_activity_id = next_activity_id
        instance.current_assignee = None
        instance.touch()

    def complete_workflow(
        self, instance: WorkflowInstance, reason: str = "Workflow completed"
    ) -> None:
        self.transition_workflow_state(instance, WorkflowStatus.COMPLETED, reason)

    def suspend_workflow(self, instance: WorkflowInstance, reason: str) -> None:
        self.transition_workflow_state(instance, WorkflowStatus.SUSPENDED, reason)

    def resume_workflow(self, instance: WorkflowInstance, reason: str = "Workflow resumed") -> None:
        self.transition_workflow_state(instance, WorkflowStatus.RUNNING, reason)

    def transition_workflow_state(
        self, instance: WorkflowInstance, target: WorkflowStatus, reason: Optional[str] = None
    ) -> None:
        """Move ``instance`` to ``target`` or raise ``InvalidStateTransition``."""
        current = instance.status
        if not can_transition(current, target):
            raise InvalidStateTransition(current.value, target.value)

        instance.status = target
        instance.status_reason = reason
        if target.is_terminal:
            instance.current_activity_id = None
            instance.current_assignee = None
            instance.completed_at = utcnow()
        if target == WorkflowStatus.FAILED:
            instance.error_message = reason
        instance.touch()
        logger.info(
            f"Workflow {instance.id} transitioned {current.value} -> {target.value}"
            + (f": {reason}" if reason else "")
        )
