"""Transition resolution over a workflow schema's activity graph."""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Any, Dict, List, Mapping, Optional

from ..contracts import ActivityDefinition, TransitionDefinition, WorkflowSchema
from ..exceptions import ExpressionError, WorkflowDefinitionError
from ..expressions import evaluate_expression, parse_expression
from ..models import ActivityResult

logger = logging.getLogger(__name__)

# Guards that look like a bare decision key never need to parse as expressions.
_DECISION_KEY = re.compile(r"^[\w\-]+$")


class FlowControlResolver:
    """Picks the next activity; pure and deterministic for equal inputs."""

    def determine_next_activity(
        self,
        schema: WorkflowSchema,
        current_id: str,
        result: ActivityResult,
        variables: Mapping[str, Any],
    ) -> Optional[str]:
        """Return the target of the first matching outgoing transition.

        Transitions are checked in declaration order. An unguarded
        transition always matches. ``None`` means the workflow ends here.
        """
        for transition in schema.outgoing(current_id):
            if self.transition_matches(transition, result, variables):
                logger.debug(
                    f"Transition {current_id} -> {transition.to_id} selected"
                    + (f" by guard '{transition.condition}'" if transition.condition else "")
                )
                return transition.to_id
        return None

    def transition_matches(
        self,
        transition: TransitionDefinition,
        result: ActivityResult,
        variables: Mapping[str, Any],
    ) -> bool:
        condition = (transition.condition or "").strip()
        if not condition:
            return True

        decision = result.decision
        if decision is None and result.output.get("decision") is not None:
            decision = str(result.output["decision"])
        if decision is not None:
            if condition.casefold() == decision.casefold():
                return True
            # a bare key such as "true" or "approved" names a decision, not an expression
            if _DECISION_KEY.match(condition):
                return False

        scope: Dict[str, Any] = {**variables, **result.output}
        if decision is not None:
            scope["decision"] = decision
        try:
            return evaluate_expression(condition, scope)
        except ExpressionError as e:
            logger.warning(
                f"Guard '{condition}' on transition {transition.from_id} -> {transition.to_id} "
                f"could not be evaluated: {e}"
            )
            return False

    def get_start_activity(self, schema: WorkflowSchema) -> ActivityDefinition:
        """The unique activity with no incoming transition."""
        targets = {t.to_id for t in schema.transitions}
        starts = [a for a in schema.activities if a.id not in targets]
        if len(starts) != 1:
            found = ", ".join(a.id for a in starts) or "none"
            raise WorkflowDefinitionError(
                f"Workflow '{schema.id}' must have exactly one start activity (found: {found})"
            )
        return starts[0]

    def validate_workflow_transitions(self, schema: WorkflowSchema) -> List[str]:
        """Return graph errors; an empty list means the graph is sound."""
        errors: List[str] = []
        ids = [a.id for a in schema.activities]
        declared = set(ids)
        if len(declared) != len(ids):
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            errors.append(f"Duplicate activity ids: {', '.join(duplicates)}")

        for transition in schema.transitions:
            if transition.from_id not in declared:
                errors.append(
                    f"Transition references unknown source activity '{transition.from_id}'"
                )
            if transition.to_id not in declared:
                errors.append(
                    f"Transition references unknown target activity '{transition.to_id}'"
                )
            condition = (transition.condition or "").strip()
            if condition and not _DECISION_KEY.match(condition):
                try:
                    parse_expression(condition)
                except ExpressionError as e:
                    errors.append(
                        f"Invalid guard on transition {transition.from_id} -> {transition.to_id}: {e}"
                    )

        try:
            start = self.get_start_activity(schema)
        except WorkflowDefinitionError as e:
            errors.append(str(e))
            return errors

        reachable = {start.id}
        queue = deque([start.id])
        while queue:
            for transition in schema.outgoing(queue.popleft()):
                if transition.to_id not in reachable:
                    reachable.add(transition.to_id)
                    queue.append(transition.to_id)
        orphans = [i for i in ids if i not in reachable]
        if orphans:
            errors.append(f"Activities unreachable from start: {', '.join(orphans)}")
        return errors
