"""Activity contract shared by all workflow step implementations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, List, Type

from pydantic import BaseModel, ConfigDict

from ..models import ActivityContext, ActivityResult

logger = logging.getLogger(__name__)


class ActivityConfig(BaseModel):
    """Typed configuration parsed from an activity's property bag."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


def normalize_activity_id(activity_id: str) -> str:
    """Make an activity id safe for use as a variable key prefix."""
    return activity_id.replace("-", "_").replace(" ", "_")


class WorkflowActivity(ABC):
    """A typed unit of work exposing execute, resume and validate."""

    activity_type: ClassVar[str]
    description: ClassVar[str] = ""
    config_model: ClassVar[Type[ActivityConfig]] = ActivityConfig

    @abstractmethod
    async def execute(self, context: ActivityContext) -> ActivityResult:
        """Run the activity for the first time."""

    async def resume(
        self, context: ActivityContext, resume_input: Dict[str, Any]
    ) -> ActivityResult:
        """Continue a suspended activity with external input."""
        logger.warning(
            f"{self.activity_type} activity {context.activity_id} received an unexpected resume call"
        )
        return ActivityResult.failed(
            f"{self.activity_type} does not support resume operations"
        )

    async def validate(self, context: ActivityContext) -> List[str]:
        """Return a list of configuration errors, empty when valid."""
        return []

    def config(self, context: ActivityContext) -> ActivityConfig:
        """Typed configuration for ``context``, parsed on demand."""
        if isinstance(context.config, self.config_model):
            return context.config
        return self.config_model.model_validate(context.properties)
