"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict, List

from ..contracts import WorkflowSchema
from ..models import Checkpoint, WorkflowInstance
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Instances are copied on the way in
    and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._schemas: Dict[str, WorkflowSchema] = {}
        self._instances: Dict[str, WorkflowInstance] = {}
        self._checkpoints: Dict[str, List[Checkpoint]] = {}

    # ------------------------------------------------------------------
    async def get_schema(self, schema_id: str) -> WorkflowSchema | None:
        return self._schemas.get(schema_id)

    async def save_schema(self, schema: WorkflowSchema) -> None:
        self._schemas[schema.id] = schema

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        instance = self._instances.get(instance_id)
        return instance.model_copy(deep=True) if instance else None

    async def get_instance_by_correlation_id(
        self, correlation_id: str
    ) -> WorkflowInstance | None:
        for instance in self._instances.values():
            if instance.correlation_id == correlation_id:
                return instance.model_copy(deep=True)
        return None

    async def save_instance(self, instance: WorkflowInstance) -> None:
        self._instances[instance.id] = instance.model_copy(deep=True)

    async def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        self._checkpoints.setdefault(checkpoint.instance_id, []).append(checkpoint)

    async def list_checkpoints(self, instance_id: str) -> list[Checkpoint]:
        return list(self._checkpoints.get(instance_id, []))

    async def list_instances(self) -> list[WorkflowInstance]:
        return [i.model_copy(deep=True) for i in self._instances.values()]
