"""Assignee selection for task activities."""

from .cascade import CascadingAssignmentEngine
from .models import AssignmentContext, AssignmentResult, CustomAssignmentDecision
from .services import BusinessRulesAssignmentService, CustomAssignmentService
from .strategies import (
    AssigneeSelector,
    InMemoryUserDirectory,
    ManualSelector,
    RoundRobinSelector,
    SelectorRegistry,
    SupervisorSelector,
    UserDirectory,
    WorkloadBasedSelector,
)

__all__ = [
    "AssigneeSelector",
    "AssignmentContext",
    "AssignmentResult",
    "BusinessRulesAssignmentService",
    "CascadingAssignmentEngine",
    "CustomAssignmentDecision",
    "CustomAssignmentService",
    "InMemoryUserDirectory",
    "ManualSelector",
    "RoundRobinSelector",
    "SelectorRegistry",
    "SupervisorSelector",
    "UserDirectory",
    "WorkloadBasedSelector",
]
