"""Activity contract, built-in activities and the activity factory."""

from __future__ import annotations

from typing import Optional

from ..assignment import CascadingAssignmentEngine
from .base import ActivityConfig, WorkflowActivity, normalize_activity_id
from .builtin import (
    EndActivity,
    IfElseActivity,
    IfElseConfig,
    StartActivity,
    SwitchActivity,
    SwitchConfig,
)
from .factory import ActivityFactory
from .task import TaskActivity, TaskConfig
from .timer import TimerActivity, TimerConfig


def build_activity_factory(
    assignment_engine: Optional[CascadingAssignmentEngine] = None,
) -> ActivityFactory:
    """Create a factory with every built-in activity type registered."""

    factory = ActivityFactory()
    factory.register(StartActivity)
    factory.register(EndActivity)
    factory.register(IfElseActivity)
    factory.register(SwitchActivity)
    factory.register(
        TaskActivity, assignment_engine=assignment_engine or CascadingAssignmentEngine()
    )
    factory.register(TimerActivity)
    return factory


__all__ = [
    "ActivityConfig",
    "ActivityFactory",
    "EndActivity",
    "IfElseActivity",
    "IfElseConfig",
    "StartActivity",
    "SwitchActivity",
    "SwitchConfig",
    "TaskActivity",
    "TaskConfig",
    "TimerActivity",
    "TimerConfig",
    "WorkflowActivity",
    "build_activity_factory",
    "normalize_activity_id",
]
