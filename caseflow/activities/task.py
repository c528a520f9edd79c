"""Human task activity backed by cascading assignee selection."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..assignment import AssignmentContext, CascadingAssignmentEngine
from ..constants import ASSIGNMENT_FAILED
from ..exceptions import ExpressionError
from ..expressions import evaluate_expression, parse_expression
from ..models import ActivityContext, ActivityResult, utcnow
from .base import ActivityConfig, WorkflowActivity, normalize_activity_id

logger = logging.getLogger(__name__)

_RESERVED_INPUT_KEYS = {"decision", "decisionTaken", "completedBy", "comments"}


class TaskConfig(ActivityConfig):
    """Properties of a task activity, authored in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel)

    assignee: Optional[str] = None
    assignee_group: Optional[str] = None
    assignment_strategies: List[str] = Field(default_factory=lambda: ["Manual"])
    candidates: List[str] = Field(default_factory=list)
    supervisor_id: Optional[str] = None
    custom_assignment_service: Optional[str] = None
    escalate_to_admin_pool: bool = False
    admin_pool_id: Optional[str] = None
    input_mappings: Dict[str, str] = Field(default_factory=dict)
    output_mappings: Dict[str, str] = Field(default_factory=dict)
    decision_conditions: Dict[str, str] = Field(default_factory=dict)


class TaskActivity(WorkflowActivity):
    """Assigns a handler and suspends until the handler resumes it.

    When no handler can be resolved the task still completes, with the
    ``assignment_failed`` decision so the graph can route to manual
    intervention.
    """

    activity_type = "Task"
    description = "Human task assigned through cascading strategies"
    config_model = TaskConfig

    def __init__(self, assignment_engine: Optional[CascadingAssignmentEngine] = None) -> None:
        self.assignment_engine = assignment_engine or CascadingAssignmentEngine()

    async def execute(self, context: ActivityContext) -> ActivityResult:
        config = self.config(context)
        prefix = normalize_activity_id(context.activity_id)

        assignment = await self.assignment_engine.assign(
            AssignmentContext(
                activity_id=context.activity_id,
                activity_name=context.activity_name or context.activity_id,
                instance=context.instance,
                assignee=config.assignee,
                assignee_group=config.assignee_group,
                strategies=config.assignment_strategies,
                candidates=config.candidates,
                supervisor_id=config.supervisor_id,
                properties=context.properties,
                custom_service=config.custom_assignment_service,
                runtime_override=context.runtime_override,
                escalate_to_admin_pool=config.escalate_to_admin_pool,
                admin_pool_id=config.admin_pool_id,
            )
        )

        if not assignment.success:
            logger.warning(
                f"Task {context.activity_id} could not be assigned: {assignment.error}"
            )
            return ActivityResult.completed(
                {
                    f"{prefix}_decisionTaken": ASSIGNMENT_FAILED,
                    "assignmentError": assignment.error,
                    "assignmentMetadata": assignment.metadata,
                },
                decision=ASSIGNMENT_FAILED,
            )

        output = {
            "assignedTo": assignment.assignee,
            f"{prefix}_assignedTo": assignment.assignee,
            "assignmentStrategy": assignment.strategy,
            "assignmentReason": assignment.reason,
            "assignmentMetadata": assignment.metadata,
            "isPreviousHandler": bool(assignment.metadata.get("IsPreviousHandler")),
        }
        logger.info(
            f"Task {context.activity_id} assigned to {assignment.assignee}, awaiting completion"
        )
        return ActivityResult.pending(output, assignee=assignment.assignee)

    async def resume(
        self, context: ActivityContext, resume_input: Dict[str, Any]
    ) -> ActivityResult:
        prefix = normalize_activity_id(context.activity_id)
        try:
            config = self.config(context)
            output: Dict[str, Any] = {}
            decision = resume_input.get("decisionTaken", resume_input.get("decision"))

            for key, value in resume_input.items():
                if key not in _RESERVED_INPUT_KEYS:
                    output[f"{prefix}_{key}"] = value
            for source, variable in config.input_mappings.items():
                if source in resume_input:
                    output[variable] = resume_input[source]
            for source, target in config.output_mappings.items():
                if source in resume_input:
                    output[target.replace("{activityId}", context.activity_id)] = resume_input[source]

            if config.decision_conditions:
                scope = {**context.variables, **resume_input}
                for candidate, condition in config.decision_conditions.items():
                    if evaluate_expression(condition, scope):
                        decision = candidate
                        break

            if "comments" in resume_input:
                output["comments"] = resume_input["comments"]
            output["completedBy"] = resume_input.get("completedBy", "Unknown")
            output["completedAt"] = utcnow().isoformat()
            if decision is not None:
                decision = str(decision)
                output[f"{prefix}_decisionTaken"] = decision
        except Exception as e:
            logger.error(f"Task {context.activity_id} resume failed: {e}", exc_info=True)
            result = ActivityResult.failed(f"TaskActivity resume failed: {e}")
            result.output[f"{prefix}_decisionTaken"] = "resume_failed"
            return result

        return ActivityResult.completed(output, decision=decision)

    async def validate(self, context: ActivityContext) -> List[str]:
        config = self.config(context)
        errors: List[str] = []
        selectors = self.assignment_engine.selectors

        if not (
            config.assignee
            or config.assignee_group
            or config.candidates
            or config.supervisor_id
            or config.custom_assignment_service
            or config.escalate_to_admin_pool
        ):
            errors.append(
                "At least one assignment method must be specified "
                "(assignee, assigneeGroup, candidates, supervisorId, customAssignmentService "
                "or escalateToAdminPool)"
            )
        for name in config.assignment_strategies:
            if selectors.get(name) is None:
                errors.append(f"Unknown assignment strategy '{name}'")
        if (
            config.custom_assignment_service
            and config.custom_assignment_service not in self.assignment_engine.services
        ):
            errors.append(
                f"Custom assignment service '{config.custom_assignment_service}' is not registered"
            )
        for candidate, condition in config.decision_conditions.items():
            try:
                parse_expression(condition)
            except ExpressionError as e:
                errors.append(f"Invalid decision condition for '{candidate}': {e}")
        return errors
