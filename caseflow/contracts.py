"""Workflow schema contracts authored outside the engine."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ActivityDefinition(BaseModel):
    """Defines one step in a workflow schema."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    name: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)


class TransitionDefinition(BaseModel):
    """Directed edge between two activities with an optional guard."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = None
    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    condition: Optional[str] = None


class WorkflowSchema(BaseModel):
    """Immutable activity graph that instances are executed against."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    version: int = 1
    description: Optional[str] = None
    activities: List[ActivityDefinition] = Field(default_factory=list)
    transitions: List[TransitionDefinition] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def get_activity(self, activity_id: str) -> Optional[ActivityDefinition]:
        """Return the activity definition with ``activity_id`` if declared."""
        return next((a for a in self.activities if a.id == activity_id), None)

    def outgoing(self, activity_id: str) -> List[TransitionDefinition]:
        """Transitions leaving ``activity_id`` in declaration order."""
        return [t for t in self.transitions if t.from_id == activity_id]


def load_schema(path: str | Path) -> WorkflowSchema:
    """Load a workflow schema from a YAML or JSON file."""

    path = Path(path)
    text = path.read_text()
    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}
    schema = WorkflowSchema.model_validate(data)
    logger.debug(f"Loaded workflow schema {schema.id} from {path}")
    return schema


__all__ = [
    "ActivityDefinition",
    "TransitionDefinition",
    "WorkflowSchema",
    "load_schema",
]
