"""Control activities that complete immediately without human input."""

from __future__ import annotations

import logging
from typing import Any, List

from pydantic import Field

from ..exceptions import ExpressionError
from ..expressions import compare, evaluate_expression, parse_expression
from ..models import ActivityContext, ActivityResult, utcnow
from .base import ActivityConfig, WorkflowActivity, normalize_activity_id

logger = logging.getLogger(__name__)

_CASE_OPERATORS = ("==", "!=", ">=", "<=", ">", "<", "contains ")
_SWITCH_VALUE = "__switch_value"


class StartActivity(WorkflowActivity):
    activity_type = "Start"
    description = "Entry point of a workflow"

    async def execute(self, context: ActivityContext) -> ActivityResult:
        logger.info(f"Workflow {context.instance.id} started at {context.activity_id}")
        return ActivityResult.completed(
            {
                "workflowStartedAt": utcnow().isoformat(),
                "startedBy": context.instance.started_by,
            }
        )


class EndActivity(WorkflowActivity):
    activity_type = "End"
    description = "Terminal step of a workflow"

    async def execute(self, context: ActivityContext) -> ActivityResult:
        logger.info(f"Workflow {context.instance.id} reached end activity {context.activity_id}")
        return ActivityResult.completed({"workflowCompletedAt": utcnow().isoformat()})


class IfElseConfig(ActivityConfig):
    condition: str = ""


class IfElseActivity(WorkflowActivity):
    """Binary routing; emits decision ``"true"`` or ``"false"``."""

    activity_type = "IfElse"
    description = "Binary conditional routing based on a boolean expression"
    config_model = IfElseConfig

    async def execute(self, context: ActivityContext) -> ActivityResult:
        config = self.config(context)
        if not config.condition.strip():
            return ActivityResult.failed("Missing required 'condition' property")
        try:
            outcome = evaluate_expression(config.condition, context.variables)
        except ExpressionError as e:
            logger.error(f"IfElse {context.activity_id} failed to evaluate condition: {e}")
            return ActivityResult.failed(f"Condition evaluation failed: {e}")

        logger.info(
            f"IfElse {context.activity_id} evaluated '{config.condition}' = {outcome}"
        )
        prefix = normalize_activity_id(context.activity_id)
        decision = "true" if outcome else "false"
        return ActivityResult.completed(
            {
                f"{prefix}_condition": config.condition,
                f"{prefix}_result": outcome,
                f"{prefix}_decisionTaken": decision,
            },
            decision=decision,
        )

    async def validate(self, context: ActivityContext) -> List[str]:
        config = self.config(context)
        if not config.condition.strip():
            return ["'condition' property is required for IfElse"]
        try:
            parse_expression(config.condition)
        except ExpressionError as e:
            return [f"Invalid condition syntax: {e}"]
        return []


class SwitchConfig(ActivityConfig):
    expression: str = ""
    cases: List[str] = Field(default_factory=list)


class SwitchActivity(WorkflowActivity):
    """Multi-branch routing; the matched case (or ``default``) is the decision.

    A case is either a plain value compared for equality or an operator
    followed by an operand, e.g. ``> 100`` or ``contains 'urgent'``.
    """

    activity_type = "Switch"
    description = "Multi-branch conditional routing with value matching"
    config_model = SwitchConfig

    async def execute(self, context: ActivityContext) -> ActivityResult:
        config = self.config(context)
        if not config.expression.strip():
            return ActivityResult.failed("Missing required 'expression' property")
        if not config.cases:
            return ActivityResult.failed("Missing or empty 'cases' property")

        try:
            value = parse_expression(config.expression).evaluate(context.variables)
            matched = next(
                (c for c in config.cases if self._matches(c, value, context.variables)),
                "default",
            )
        except ExpressionError as e:
            logger.error(f"Switch {context.activity_id} failed to evaluate expression: {e}")
            return ActivityResult.failed(f"Expression evaluation failed: {e}")

        logger.info(
            f"Switch {context.activity_id} evaluated '{config.expression}' = {value!r}, matched case '{matched}'"
        )
        prefix = normalize_activity_id(context.activity_id)
        return ActivityResult.completed(
            {
                f"{prefix}_expression": config.expression,
                f"{prefix}_expressionResult": value,
                f"{prefix}_case": matched,
                f"{prefix}_decisionTaken": matched,
            },
            decision=matched,
        )

    @staticmethod
    def _matches(case: str, value: Any, variables: dict) -> bool:
        case = case.strip()
        if case.lower().startswith(_CASE_OPERATORS):
            scope = dict(variables)
            scope[_SWITCH_VALUE] = value
            return evaluate_expression(f"{_SWITCH_VALUE} {case}", scope)
        literal = case
        if len(case) >= 2 and case[0] == case[-1] and case[0] in "'\"":
            literal = case[1:-1]
        return compare(value, literal) == 0

    async def validate(self, context: ActivityContext) -> List[str]:
        config = self.config(context)
        errors: List[str] = []
        if not config.expression.strip():
            errors.append("'expression' property is required for Switch")
        else:
            try:
                parse_expression(config.expression)
            except ExpressionError as e:
                errors.append(f"Invalid expression syntax: {e}")
        if not config.cases:
            errors.append("'cases' property must contain at least one case for Switch")
        elif any(not c.strip() for c in config.cases):
            errors.append("Case conditions cannot be empty")
        return errors
