"""Cascading assignee selection.

Stages run in order and the first success wins:

1. custom assignment service named on the activity (may decline)
2. runtime override recorded on the instance
3. previous owner of the same activity in this instance
4. the activity's ordered strategy list
5. admin-pool fallback, when the activity opts in

A failing or raising stage falls through to the next one.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from ..constants import DEFAULT_ADMIN_POOL
from ..models import ExecutionStatus
from .models import AssignmentContext, AssignmentResult
from .services import CustomAssignmentService
from .strategies import SelectorRegistry

logger = logging.getLogger(__name__)

ADMIN_POOL_STRATEGY = "AdminPoolFallback"


class CascadingAssignmentEngine:
    def __init__(
        self,
        selectors: Optional[SelectorRegistry] = None,
        services: Optional[Dict[str, CustomAssignmentService]] = None,
        default_admin_pool: str = DEFAULT_ADMIN_POOL,
    ) -> None:
        self.selectors = selectors or SelectorRegistry.default()
        self.services: Dict[str, CustomAssignmentService] = dict(services or {})
        self.default_admin_pool = default_admin_pool

    def register_service(self, name: str, service: CustomAssignmentService) -> None:
        self.services[name] = service

    async def assign(self, context: AssignmentContext) -> AssignmentResult:
        """Resolve a handler for ``context`` through every stage in turn."""

        stages: List[tuple[str, Callable[[AssignmentContext], Awaitable[Optional[AssignmentResult]]]]] = [
            ("CustomService", self._custom_service),
            ("RuntimeOverride", self._runtime_override),
            ("PreviousOwner", self._previous_owner),
            ("Strategies", self._configured_strategies),
            ("AdminPool", self._admin_pool),
        ]
        failures: List[str] = []
        for stage, handler in stages:
            try:
                result = await handler(context)
            except Exception as e:
                logger.error(
                    f"Assignment stage {stage} raised for activity {context.activity_id}: {e}",
                    exc_info=True,
                )
                failures.append(f"{stage}: {e}")
                continue
            if result is None:
                continue
            if result.success:
                result.metadata.setdefault("AssignmentStage", stage)
                logger.info(
                    f"Activity {context.activity_id} assigned to {result.assignee} via {stage}"
                )
                return result
            failures.append(f"{stage}: {result.error}")

        message = "All assignment stages failed"
        if failures:
            message = f"{message}. {'; '.join(failures)}"
        logger.error(f"{message} (activity {context.activity_id})")
        return AssignmentResult.failure(message, metadata={"FailureReasons": failures})

    # ------------------------------------------------------------------
    # Stages
    async def _custom_service(self, context: AssignmentContext) -> Optional[AssignmentResult]:
        name = context.custom_service
        if not name:
            return None
        service = self.services.get(name)
        if service is None:
            return AssignmentResult.failure(f"Custom assignment service '{name}' is not registered")

        decision = await service.decide(context)
        if not decision.use_custom_assignment:
            logger.info(f"Custom service {name} declined for {context.activity_id}: {decision.reason}")
            return None

        metadata = {"CustomService": name, **decision.metadata}
        if decision.assignee:
            return AssignmentResult.assigned(
                decision.assignee, "CustomService", reason=decision.reason, metadata=metadata
            )
        redirected = context.with_overrides(
            assignee_group=decision.group or context.assignee_group,
            properties={**context.properties, **decision.properties},
        )
        result = await self.run_strategies(redirected, decision.strategies or context.strategies)
        if result.success:
            result.reason = decision.reason or result.reason
            result.metadata.update(metadata)
        return result

    async def _runtime_override(self, context: AssignmentContext) -> Optional[AssignmentResult]:
        override = context.runtime_override
        if override is None or not override.has_assignment_override:
            return None
        metadata = {
            "RuntimeOverride": True,
            "OverrideBy": override.override_by,
            "OverrideReason": override.reason,
        }
        if override.assignee:
            return AssignmentResult.assigned(
                override.assignee,
                "RuntimeOverride",
                reason=override.reason or "Runtime assignment override",
                metadata=metadata,
            )
        overridden = context.with_overrides(
            assignee=None,
            assignee_group=override.assignee_group or context.assignee_group,
        )
        result = await self.run_strategies(overridden, override.strategies or context.strategies)
        if result.success:
            result.metadata.update(metadata)
        return result

    async def _previous_owner(self, context: AssignmentContext) -> Optional[AssignmentResult]:
        for execution in reversed(context.instance.executions):
            if (
                execution.activity_id != context.activity_id
                or execution.status != ExecutionStatus.COMPLETED
            ):
                continue
            owner = execution.completed_by or execution.assigned_to
            if owner:
                return AssignmentResult.assigned(
                    owner,
                    "PreviousOwner",
                    reason="Reassigned to the previous handler of this activity",
                    metadata={"IsPreviousHandler": True, "PreviousExecutionId": execution.id},
                )
        return None

    async def _configured_strategies(self, context: AssignmentContext) -> Optional[AssignmentResult]:
        if not context.strategies:
            return None
        return await self.run_strategies(context, context.strategies)

    async def _admin_pool(self, context: AssignmentContext) -> Optional[AssignmentResult]:
        if not context.escalate_to_admin_pool:
            return None
        pool = context.admin_pool_id or self.default_admin_pool
        logger.warning(f"Escalating activity {context.activity_id} to admin pool {pool}")
        return AssignmentResult.assigned(
            pool,
            ADMIN_POOL_STRATEGY,
            reason="All primary strategies failed; escalated to admin pool",
            metadata={
                "IsFallbackAssignment": True,
                "SelectionStrategy": ADMIN_POOL_STRATEGY,
                "AdminPoolId": pool,
            },
        )

    # ------------------------------------------------------------------
    async def run_strategies(
        self, context: AssignmentContext, strategies: List[str]
    ) -> AssignmentResult:
        """Try ``strategies`` in order and return the first success."""

        attempted: List[str] = []
        reasons: List[str] = []
        for name in strategies:
            attempted.append(name)
            selector = self.selectors.get(name)
            if selector is None:
                reasons.append(f"{name}: Invalid strategy name")
                logger.error(f"Invalid assignment strategy {name} for activity {context.activity_id}")
                continue
            try:
                result = await selector.select(context)
            except Exception as e:
                reasons.append(f"{name}: {e}")
                logger.error(
                    f"Error executing assignment strategy {name} for activity {context.activity_id}",
                    exc_info=True,
                )
                continue
            if result.success:
                result.metadata.update(
                    {
                        "CascadingStrategies": list(attempted),
                        "SuccessfulStrategy": name,
                        "StrategyPosition": len(attempted),
                    }
                )
                return result
            reasons.append(f"{name}: {result.error}")
            logger.warning(
                f"Assignment strategy {name} failed for activity {context.activity_id}: {result.error}"
            )

        return AssignmentResult.failure(
            f"All assignment strategies failed. Attempted: {', '.join(attempted)}. "
            f"Failures: {'; '.join(reasons)}",
            metadata={
                "AttemptedStrategies": attempted,
                "FailureReasons": reasons,
                "CascadingFailed": True,
            },
        )
