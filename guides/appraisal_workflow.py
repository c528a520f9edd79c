"""Property appraisal workflow walkthrough."""

import asyncio
from pathlib import Path

from caseflow import CaseflowConfig, WorkflowEngine, build_activity_factory, load_schema
from caseflow.assignment import (
    BusinessRulesAssignmentService,
    CascadingAssignmentEngine,
    InMemoryUserDirectory,
    SelectorRegistry,
)
from caseflow.persistence import InMemoryWorkflowRepository

SCHEMA_PATH = Path(__file__).parent.parent / "tests" / "fixtures" / "appraisal.yaml"


def build_engine() -> WorkflowEngine:
    """Engine with a small appraiser directory and the loan business rules."""
    directory = InMemoryUserDirectory(
        groups={"appraisers": ["ann", "ben", "cho"]},
        supervisors={"appraisers": "sue"},
    )
    assignment = CascadingAssignmentEngine(
        selectors=SelectorRegistry.default(directory),
        services={"loanRules": BusinessRulesAssignmentService()},
    )
    return WorkflowEngine(
        InMemoryWorkflowRepository(),
        activity_factory=build_activity_factory(assignment),
        config=CaseflowConfig(),
    )


async def happy_path(engine: WorkflowEngine):
    """Appraiser submits, committee approves."""
    print("🏠 Appraisal happy path")

    result = await engine.start_workflow(
        "property-appraisal",
        "Condo appraisal",
        "clerk",
        initial_variables={"risk": "low"},
        correlation_id="APP-001",
    )
    print(f"⏸️  Waiting on {result.next_activity_id} ({result.instance.current_assignee})")

    result = await engine.resume_by_correlation_id(
        "APP-001",
        "appraiser-review",
        result.instance.current_assignee,
        {"decision": "submitted", "appraisedValue": 2500000},
    )
    print(f"⏸️  Waiting on {result.next_activity_id} ({result.instance.current_assignee})")

    result = await engine.resume_by_correlation_id(
        "APP-001",
        "committee",
        "committee-chair",
        {"decision": "submitted", "appraisedValue": 2500000},
    )
    print(f"✅ Workflow {result.instance.id}: {result.instance.status.value}")


async def revision_loop(engine: WorkflowEngine):
    """Committee sends the appraisal back to the same appraiser."""
    print("\n🔁 Appraisal with revision")

    result = await engine.start_workflow(
        "property-appraisal", "Land appraisal", "clerk", correlation_id="APP-002"
    )
    first_appraiser = result.instance.current_assignee
    await engine.resume_by_correlation_id(
        "APP-002", "appraiser-review", first_appraiser, {"decision": "submitted"}
    )
    result = await engine.resume_by_correlation_id(
        "APP-002", "committee", "committee-chair", {"decision": "revise", "comments": "Add comparables"}
    )
    print(
        f"↩️  Returned to {result.instance.current_assignee} "
        f"(previous handler: {result.instance.variables['isPreviousHandler']})"
    )

    checkpoints = await engine.repository.list_checkpoints(result.instance.id)
    print(f"📜 Checkpoints so far: {len(checkpoints)}")


async def main():
    """Run examples."""
    print("📋 caseflow examples\n")
    engine = build_engine()
    schema = load_schema(SCHEMA_PATH)
    if not await engine.validate_workflow_definition(schema):
        print("❌ Schema is invalid, run 'caseflow schema validate' for details")
        return
    await engine.register_schema(schema)

    await happy_path(engine)
    await revision_loop(engine)
    print("\n🎉 Complete! See tests/ for more examples.")


if __name__ == "__main__":
    asyncio.run(main())
