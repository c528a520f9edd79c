"""Exception hierarchy for the caseflow engine."""

from __future__ import annotations

from typing import Optional


class CaseflowError(Exception):
    """Base class for all caseflow errors."""


class WorkflowDefinitionError(CaseflowError):
    """A workflow schema is malformed or cannot be executed."""


class SchemaNotFound(CaseflowError):
    def __init__(self, schema_id: str) -> None:
        super().__init__(f"Workflow schema '{schema_id}' not found")
        self.schema_id = schema_id


class InstanceNotFound(CaseflowError):
    def __init__(self, instance_id: str) -> None:
        super().__init__(f"Workflow instance '{instance_id}' not found")
        self.instance_id = instance_id


class ActivityMismatch(CaseflowError):
    """A resume call targeted an activity that is not the current one."""

    def __init__(
        self, instance_id: str, expected: Optional[str], received: str
    ) -> None:
        super().__init__(
            f"Activity mismatch for instance '{instance_id}': "
            f"expected '{expected}', got '{received}'"
        )
        self.instance_id = instance_id
        self.expected = expected
        self.received = received


class UnknownActivityType(CaseflowError):
    def __init__(self, activity_type: str) -> None:
        super().__init__(f"Unknown activity type: {activity_type}")
        self.activity_type = activity_type


class InvalidStateTransition(CaseflowError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid state transition from {current} to {target}")
        self.current = current
        self.target = target


class WorkflowStateError(CaseflowError):
    """The instance is not in a state that allows the requested operation."""


class ExpressionError(CaseflowError):
    """A guard expression could not be parsed or evaluated."""


__all__ = [
    "CaseflowError",
    "WorkflowDefinitionError",
    "SchemaNotFound",
    "InstanceNotFound",
    "ActivityMismatch",
    "UnknownActivityType",
    "InvalidStateTransition",
    "WorkflowStateError",
    "ExpressionError",
]
