"""Instance state merging, persistence and strategic checkpoints."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..exceptions import ActivityMismatch, WorkflowStateError
from ..models import Checkpoint, RuntimeOverride, WorkflowInstance, WorkflowStatus
from ..persistence import WorkflowRepository

logger = logging.getLogger(__name__)


class StateManager:
    """Writes instance state through the repository.

    Checkpoints are only taken at terminal transitions and on resume to
    completion; ordinary advances stay in memory.
    """

    def __init__(self, repository: WorkflowRepository) -> None:
        self.repository = repository

    def merge_variables(self, instance: WorkflowInstance, output: Mapping[str, Any]) -> None:
        """Add or overwrite variables; keys are never removed."""
        if not output:
            return
        instance.variables.update(output)
        instance.touch()

    def update_runtime_overrides(
        self, instance: WorkflowInstance, overrides: Mapping[str, RuntimeOverride]
    ) -> None:
        for activity_id, override in overrides.items():
            instance.runtime_overrides[activity_id] = override
            logger.info(
                f"Runtime override recorded for {instance.id}/{activity_id} by {override.override_by}"
            )
        instance.touch()

    async def persist_instance(self, instance: WorkflowInstance) -> None:
        await self.repository.save_instance(instance)

    async def create_checkpoint(
        self, instance: WorkflowInstance, reason: str
    ) -> Optional[Checkpoint]:
        """Save the instance and append a checkpoint.

        Write failures are logged and swallowed so that an already decided
        status change is never undone by the audit trail.
        """
        checkpoint = Checkpoint(
            instance_id=instance.id,
            status=instance.status,
            reason=reason,
            snapshot=instance.model_dump(mode="json"),
        )
        try:
            await self.repository.save_instance(instance)
            await self.repository.save_checkpoint(checkpoint)
        except Exception as e:
            logger.error(
                f"Failed to write checkpoint '{reason}' for workflow {instance.id}: {e}",
                exc_info=True,
            )
            return None
        logger.info(f"Checkpoint '{reason}' written for workflow {instance.id}")
        return checkpoint

    def validate_resume_state(self, instance: WorkflowInstance, activity_id: str) -> None:
        """Reject stale, duplicate or premature resume requests."""
        if instance.current_activity_id != activity_id:
            raise ActivityMismatch(instance.id, instance.current_activity_id, activity_id)
        if instance.status != WorkflowStatus.SUSPENDED:
            raise WorkflowStateError(
                f"Workflow {instance.id} is {instance.status.value}, not suspended"
            )

