"""Repository abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Protocol

from ..contracts import WorkflowSchema
from ..models import Checkpoint, WorkflowInstance


class WorkflowRepository(Protocol):
    """Protocol for workflow state persistence backends.

    Lookups return ``None`` when nothing is stored under the key; the
    engine decides which not-found error to raise.
    """

    async def get_schema(self, schema_id: str) -> WorkflowSchema | None:
        """Retrieve a workflow schema by id."""

    async def save_schema(self, schema: WorkflowSchema) -> None:
        """Persist or replace a workflow schema."""

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        """Retrieve a workflow instance by id."""

    async def get_instance_by_correlation_id(
        self, correlation_id: str
    ) -> WorkflowInstance | None:
        """Retrieve a workflow instance by its external correlation id."""

    async def save_instance(self, instance: WorkflowInstance) -> None:
        """Persist the current state of an instance."""

    async def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        """Append a checkpoint record."""

    async def list_checkpoints(self, instance_id: str) -> list[Checkpoint]:
        """Return checkpoints for an instance, oldest first."""

    async def list_instances(self) -> list[WorkflowInstance]:
        """Return all persisted instances."""
