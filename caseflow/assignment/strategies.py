"""Assignee selection strategies used by the cascade."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol

from .models import AssignmentContext, AssignmentResult

logger = logging.getLogger(__name__)


class UserDirectory(Protocol):
    """Lookup of users, groups and workloads used by selectors."""

    async def group_members(self, group: str) -> List[str]:
        """Active users belonging to ``group``."""

    async def active_workload(self, user_id: str) -> int:
        """Number of open tasks currently held by ``user_id``."""

    async def supervisor_for_group(self, group: str) -> Optional[str]:
        """Supervisor responsible for ``group``, if any."""


class InMemoryUserDirectory(UserDirectory):
    """Directory backed by plain dictionaries.

    Useful for tests or when no identity service is available. Group
    names are matched case-insensitively.
    """

    def __init__(
        self,
        groups: Optional[Dict[str, Iterable[str]]] = None,
        supervisors: Optional[Dict[str, str]] = None,
        workloads: Optional[Dict[str, int]] = None,
        default_supervisor: Optional[str] = None,
    ) -> None:
        self._groups = {k.lower(): list(v) for k, v in (groups or {}).items()}
        self._supervisors = {k.lower(): v for k, v in (supervisors or {}).items()}
        self._workloads: Dict[str, int] = dict(workloads or {})
        self.default_supervisor = default_supervisor

    async def group_members(self, group: str) -> List[str]:
        return list(self._groups.get(group.lower(), []))

    async def active_workload(self, user_id: str) -> int:
        return self._workloads.get(user_id, 0)

    async def supervisor_for_group(self, group: str) -> Optional[str]:
        return self._supervisors.get(group.lower(), self.default_supervisor)


class AssigneeSelector(Protocol):
    name: str

    async def select(self, context: AssignmentContext) -> AssignmentResult:
        """Pick a handler or report why none could be chosen."""


async def _candidates(context: AssignmentContext, directory: UserDirectory) -> List[str]:
    if context.candidates:
        return list(context.candidates)
    if context.assignee_group:
        return await directory.group_members(context.assignee_group)
    return []


class ManualSelector:
    """Uses the assignee configured on the activity."""

    name = "Manual"

    async def select(self, context: AssignmentContext) -> AssignmentResult:
        if not context.assignee:
            return AssignmentResult.failure("No assignee configured for manual assignment")
        return AssignmentResult.assigned(
            context.assignee,
            self.name,
            reason="Manually configured assignee",
            metadata={"SelectionStrategy": self.name},
        )


class RoundRobinSelector:
    """Rotates through the candidate pool, one cursor per group."""

    name = "RoundRobin"

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory
        self._cursors: Dict[str, int] = defaultdict(int)

    async def select(self, context: AssignmentContext) -> AssignmentResult:
        pool = await _candidates(context, self._directory)
        if not pool:
            return AssignmentResult.failure("No candidates available for round-robin assignment")
        key = context.assignee_group or ",".join(pool)
        position = self._cursors[key] % len(pool)
        self._cursors[key] = position + 1
        assignee = pool[position]
        return AssignmentResult.assigned(
            assignee,
            self.name,
            reason=f"Round-robin position {position + 1} of {len(pool)}",
            metadata={"SelectionStrategy": self.name, "PoolSize": len(pool)},
        )


class WorkloadBasedSelector:
    """Picks the candidate with the fewest open tasks."""

    name = "WorkloadBased"

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    async def select(self, context: AssignmentContext) -> AssignmentResult:
        pool = await _candidates(context, self._directory)
        if not pool:
            return AssignmentResult.failure("No candidates available for workload-based assignment")
        loads = {user: await self._directory.active_workload(user) for user in pool}
        assignee = min(pool, key=lambda user: loads[user])
        return AssignmentResult.assigned(
            assignee,
            self.name,
            reason=f"Lowest workload ({loads[assignee]} open tasks)",
            metadata={"SelectionStrategy": self.name, "Workload": loads[assignee]},
        )


class SupervisorSelector:
    """Assigns to an explicit supervisor or the supervisor of the group."""

    name = "Supervisor"

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    async def select(self, context: AssignmentContext) -> AssignmentResult:
        supervisor = context.supervisor_id or context.properties.get("SupervisorId")
        if not supervisor and context.assignee_group:
            supervisor = await self._directory.supervisor_for_group(context.assignee_group)
        if not supervisor:
            return AssignmentResult.failure(
                "Supervisor assignment requires a supervisor to be specified or determinable from context"
            )
        logger.info(f"Supervisor selector assigned {supervisor} for activity {context.activity_id}")
        return AssignmentResult.assigned(
            str(supervisor),
            self.name,
            reason="Escalated to supervisor",
            metadata={
                "SelectionStrategy": self.name,
                "SupervisorAssignment": True,
                "SupervisorId": str(supervisor),
            },
        )


class SelectorRegistry:
    """Case-insensitive lookup of strategies by name."""

    def __init__(self, selectors: Iterable[AssigneeSelector] = ()) -> None:
        self._selectors: Dict[str, AssigneeSelector] = {}
        for selector in selectors:
            self.register(selector)

    def register(self, selector: AssigneeSelector) -> None:
        self._selectors[selector.name.lower()] = selector

    def get(self, name: str) -> Optional[AssigneeSelector]:
        return self._selectors.get(name.lower())

    def names(self) -> List[str]:
        return [s.name for s in self._selectors.values()]

    @classmethod
    def default(cls, directory: Optional[UserDirectory] = None) -> "SelectorRegistry":
        directory = directory or InMemoryUserDirectory()
        return cls(
            [
                ManualSelector(),
                RoundRobinSelector(directory),
                WorkloadBasedSelector(directory),
                SupervisorSelector(directory),
            ]
        )
