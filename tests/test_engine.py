"""Tests for starting, resuming and validating workflows."""

import pytest

from caseflow import (
    ActivityStatus,
    CaseflowConfig,
    RuntimeOverride,
    WorkflowEngine,
    WorkflowSchema,
    WorkflowStatus,
)
from caseflow.exceptions import (
    ActivityMismatch,
    InstanceNotFound,
    InvalidStateTransition,
    SchemaNotFound,
    UnknownActivityType,
    WorkflowStateError,
)
from caseflow.persistence import InMemoryWorkflowRepository


def _schema(schema_id, activities, transitions, **extra):
    return WorkflowSchema.model_validate(
        {
            "id": schema_id,
            "name": schema_id.replace("-", " ").title(),
            "activities": activities,
            "transitions": transitions,
            **extra,
        }
    )


def _task(activity_id, assignee, **properties):
    return {"id": activity_id, "type": "Task", "properties": {"assignee": assignee, **properties}}


def _routing_schema():
    return _schema(
        "loan-routing",
        [
            {"id": "start", "type": "Start"},
            {"id": "check", "type": "IfElse", "properties": {"condition": "amount > 100000"}},
            {"id": "senior", "type": "End"},
            {"id": "standard", "type": "End"},
        ],
        [
            {"from": "start", "to": "check"},
            {"from": "check", "to": "senior", "condition": "true"},
            {"from": "check", "to": "standard", "condition": "false"},
        ],
    )


def _two_step_schema():
    return _schema(
        "two-step",
        [
            {"id": "start", "type": "Start"},
            _task("prep", "u1"),
            _task("review", "u2"),
            {"id": "end", "type": "End"},
        ],
        [
            {"from": "start", "to": "prep"},
            {"from": "prep", "to": "review"},
            {"from": "review", "to": "end"},
        ],
    )


async def _engine(*schemas):
    repo = InMemoryWorkflowRepository()
    engine = WorkflowEngine(repo, config=CaseflowConfig())
    for schema in schemas:
        await engine.register_schema(schema)
    return engine, repo


@pytest.mark.asyncio
async def test_straight_through_run_writes_one_checkpoint():
    engine, repo = await _engine(_routing_schema())
    result = await engine.start_workflow(
        "loan-routing", "Loan 1", "alice", initial_variables={"amount": 250000}
    )

    assert result.status == ActivityStatus.COMPLETED
    assert not result.requires_external_completion
    instance = await repo.get_instance(result.instance.id)
    assert instance.status == WorkflowStatus.COMPLETED
    assert [e.activity_id for e in instance.executions] == ["start", "check", "senior"]
    assert instance.variables["check_result"] is True
    assert "result" not in instance.variables
    checkpoints = await repo.list_checkpoints(instance.id)
    assert [c.reason for c in checkpoints] == ["Workflow completed successfully"]
    assert checkpoints[0].snapshot["status"] == "completed"


@pytest.mark.asyncio
async def test_false_branch_is_taken():
    engine, _ = await _engine(_routing_schema())
    result = await engine.start_workflow(
        "loan-routing", "Loan 2", "alice", initial_variables={"amount": 10}
    )
    assert result.instance.executions[-1].activity_id == "standard"


@pytest.mark.asyncio
async def test_pending_task_suspends_without_checkpoint():
    engine, repo = await _engine(_two_step_schema())
    result = await engine.start_workflow("two-step", "Case", "alice")

    assert result.status == ActivityStatus.PENDING
    assert result.requires_external_completion
    assert result.next_activity_id == "prep"
    stored = await repo.get_instance(result.instance.id)
    assert stored.status == WorkflowStatus.SUSPENDED
    assert stored.current_activity_id == "prep"
    assert stored.current_assignee == "u1"
    assert stored.variables["prep_assignedTo"] == "u1"
    assert await repo.list_checkpoints(stored.id) == []


@pytest.mark.asyncio
async def test_resume_advances_to_next_task():
    engine, repo = await _engine(_two_step_schema())
    started = await engine.start_workflow("two-step", "Case", "alice")

    result = await engine.resume_workflow(
        started.instance.id, "prep", "u1", {"decision": "done", "notes": "ok"}
    )
    assert result.status == ActivityStatus.PENDING
    assert result.next_activity_id == "review"
    stored = await repo.get_instance(started.instance.id)
    assert stored.current_assignee == "u2"
    assert stored.variables["prep_notes"] == "ok"
    prep = stored.executions[1]
    assert prep.activity_id == "prep"
    assert prep.assigned_to == "u1"
    assert prep.completed_by == "u1"
    assert prep.completed_at is not None


@pytest.mark.asyncio
async def test_resume_with_wrong_activity_leaves_instance_untouched():
    engine, repo = await _engine(_two_step_schema())
    started = await engine.start_workflow("two-step", "Case", "alice")
    before = (await repo.get_instance(started.instance.id)).model_dump()

    with pytest.raises(ActivityMismatch) as excinfo:
        await engine.resume_workflow(started.instance.id, "review", "u2", {"decision": "ok"})
    assert excinfo.value.expected == "prep"
    assert (await repo.get_instance(started.instance.id)).model_dump() == before
    assert await repo.list_checkpoints(started.instance.id) == []


@pytest.mark.asyncio
async def test_duplicate_resume_is_rejected():
    schema = _schema(
        "single-review",
        [{"id": "start", "type": "Start"}, _task("review", "u1"), {"id": "end", "type": "End"}],
        [{"from": "start", "to": "review"}, {"from": "review", "to": "end"}],
    )
    engine, repo = await _engine(schema)
    started = await engine.start_workflow("single-review", "Case", "alice")
    await engine.resume_workflow(started.instance.id, "review", "u1", {"decision": "ok"})

    with pytest.raises(ActivityMismatch):
        await engine.resume_workflow(started.instance.id, "review", "u1", {"decision": "ok"})
    assert len(await repo.list_checkpoints(started.instance.id)) == 1


@pytest.mark.asyncio
async def test_missing_schema_and_instance_raise():
    engine, repo = await _engine()
    with pytest.raises(SchemaNotFound):
        await engine.start_workflow("nope", "Case", "alice")
    with pytest.raises(InstanceNotFound):
        await engine.resume_workflow("nope", "review", "u1")
    with pytest.raises(InstanceNotFound):
        await engine.resume_by_correlation_id("nope", "review", "u1")
    assert await repo.list_instances() == []


@pytest.mark.asyncio
async def test_unknown_activity_type_is_rejected_before_running():
    schema = _schema(
        "telegram",
        [{"id": "start", "type": "Start"}, {"id": "send", "type": "Telegram"}],
        [{"from": "start", "to": "send"}],
    )
    engine, repo = await _engine(schema)
    with pytest.raises(UnknownActivityType):
        await engine.start_workflow("telegram", "Case", "alice")
    assert await repo.list_instances() == []


@pytest.mark.asyncio
async def test_resume_by_correlation_id():
    engine, repo = await _engine(_two_step_schema())
    started = await engine.start_workflow("two-step", "Case", "alice", correlation_id="APP-9")
    result = await engine.resume_by_correlation_id("APP-9", "prep", "u1", {"decision": "done"})
    assert result.instance.id == started.instance.id
    assert result.next_activity_id == "review"


@pytest.mark.asyncio
async def test_runtime_override_at_start_redirects_task():
    engine, _ = await _engine(_two_step_schema())
    result = await engine.start_workflow(
        "two-step",
        "Case",
        "alice",
        runtime_overrides={"prep": RuntimeOverride(assignee="stand-in", override_by="ops")},
    )
    assert result.instance.current_assignee == "stand-in"


@pytest.mark.asyncio
async def test_override_assignment_applies_to_next_execution():
    engine, repo = await _engine(_two_step_schema())
    started = await engine.start_workflow("two-step", "Case", "alice")

    await engine.override_assignment(
        started.instance.id, "review", RuntimeOverride(assignee="boss", reason="Escalated")
    )
    stored = await repo.get_instance(started.instance.id)
    assert stored.runtime_overrides["review"].assignee == "boss"

    result = await engine.resume_workflow(started.instance.id, "prep", "u1", {"decision": "done"})
    assert result.instance.current_assignee == "boss"
    assert result.instance.variables["assignmentMetadata"]["RuntimeOverride"] is True


@pytest.mark.asyncio
async def test_override_on_finished_workflow_is_rejected():
    engine, _ = await _engine(_routing_schema())
    result = await engine.start_workflow(
        "loan-routing", "Loan", "alice", initial_variables={"amount": 1}
    )
    with pytest.raises(WorkflowStateError):
        await engine.override_assignment(
            result.instance.id, "check", RuntimeOverride(assignee="boss")
        )


@pytest.mark.asyncio
async def test_resume_accepts_overrides_for_later_activities():
    engine, _ = await _engine(_two_step_schema())
    started = await engine.start_workflow("two-step", "Case", "alice")
    result = await engine.resume_workflow(
        started.instance.id,
        "prep",
        "u1",
        {"decision": "done"},
        runtime_overrides={"review": RuntimeOverride(assignee="deputy")},
    )
    assert result.instance.current_assignee == "deputy"


@pytest.mark.asyncio
async def test_override_properties_replace_declared_task_properties():
    engine, _ = await _engine(_two_step_schema())
    override = RuntimeOverride(override_properties={"assignee": "night-shift"}, override_by="ops")
    result = await engine.start_workflow(
        "two-step", "Case", "alice", runtime_overrides={"prep": override}
    )
    assert result.instance.current_assignee == "night-shift"
    assert result.instance.variables["assignmentStrategy"] == "Manual"
    assert result.instance.runtime_overrides["prep"].override_properties == {
        "assignee": "night-shift"
    }


@pytest.mark.asyncio
async def test_cancel_workflow():
    engine, repo = await _engine(_two_step_schema())
    started = await engine.start_workflow("two-step", "Case", "alice")

    cancelled = await engine.cancel_workflow(started.instance.id, "ops", "Customer withdrew")
    assert cancelled.status == WorkflowStatus.CANCELLED
    assert cancelled.status_reason == "Customer withdrew"
    assert cancelled.current_activity_id is None
    checkpoints = await repo.list_checkpoints(started.instance.id)
    assert [c.reason for c in checkpoints] == ["Workflow cancelled"]

    with pytest.raises(InvalidStateTransition):
        await engine.cancel_workflow(started.instance.id, "ops")
    with pytest.raises(ActivityMismatch):
        await engine.resume_workflow(started.instance.id, "prep", "u1")


@pytest.mark.asyncio
async def test_execute_workflow_resumes_suspended_instance_directly():
    schema = _two_step_schema()
    engine, repo = await _engine(schema)
    started = await engine.start_workflow("two-step", "Case", "alice")
    instance = await repo.get_instance(started.instance.id)

    result = await engine.execute_workflow(
        schema, instance, schema.get_activity("prep"), {"decision": "done", "completedBy": "u1"}
    )
    assert result.status == ActivityStatus.PENDING
    assert result.next_activity_id == "review"


@pytest.mark.asyncio
async def test_execute_workflow_without_input_leaves_suspended_instance_untouched():
    schema = _two_step_schema()
    engine, repo = await _engine(schema)
    started = await engine.start_workflow("two-step", "Case", "alice")
    instance = await repo.get_instance(started.instance.id)

    with pytest.raises(WorkflowStateError):
        await engine.execute_workflow(schema, instance, schema.get_activity("prep"))

    stored = await repo.get_instance(started.instance.id)
    assert stored.status == WorkflowStatus.SUSPENDED
    assert stored.current_activity_id == "prep"
    assert len(stored.executions) == 2
    assert await repo.list_checkpoints(started.instance.id) == []


@pytest.mark.asyncio
async def test_execute_workflow_on_finished_instance_is_rejected():
    schema = _routing_schema()
    engine, repo = await _engine(schema)
    result = await engine.start_workflow(
        "loan-routing", "Loan", "alice", initial_variables={"amount": 1}
    )
    instance = await repo.get_instance(result.instance.id)
    assert instance.status == WorkflowStatus.COMPLETED

    with pytest.raises(WorkflowStateError):
        await engine.execute_workflow(schema, instance, schema.get_activity("start"))
    with pytest.raises(WorkflowStateError):
        await engine.execute_workflow(
            schema, instance, schema.get_activity("check"), {"decision": "true"}
        )

    stored = await repo.get_instance(result.instance.id)
    assert stored.status == WorkflowStatus.COMPLETED
    assert len(stored.executions) == 3
    assert len(await repo.list_checkpoints(result.instance.id)) == 1


@pytest.mark.asyncio
async def test_validate_workflow_definition():
    engine, _ = await _engine()
    assert await engine.validate_workflow_definition(_two_step_schema())
    assert await engine.validate_workflow_definition(_routing_schema())

    unnamed = _two_step_schema().model_copy(update={"name": " "})
    assert not await engine.validate_workflow_definition(unnamed)

    empty = _schema("empty", [], [])
    assert not await engine.validate_workflow_definition(empty)
    assert await engine.collect_validation_errors(empty) == [
        "Workflow must declare at least one activity"
    ]

    unassigned = _schema(
        "unassigned",
        [{"id": "start", "type": "Start"}, {"id": "review", "type": "Task"}],
        [{"from": "start", "to": "review"}],
    )
    assert not await engine.validate_workflow_definition(unassigned)

    unknown = _schema(
        "unknown",
        [{"id": "start", "type": "Start"}, {"id": "send", "type": "Telegram"}],
        [{"from": "start", "to": "send"}],
    )
    assert await engine.collect_validation_errors(unknown) == [
        "Activity 'send' has unknown type 'Telegram'"
    ]

    bad_switch = _schema(
        "bad-switch",
        [
            {"id": "start", "type": "Start"},
            {"id": "route", "type": "Switch", "properties": {"cases": "gold"}},
        ],
        [{"from": "start", "to": "route"}],
    )
    errors = await engine.collect_validation_errors(bad_switch)
    assert len(errors) == 1
    assert errors[0].startswith("Activity 'route': validation raised ValidationError")


@pytest.mark.asyncio
async def test_timer_suspends_until_resumed_by_scheduler():
    schema = _schema(
        "cooling-off",
        [
            {"id": "start", "type": "Start"},
            {
                "id": "wait",
                "type": "Timer",
                "properties": {"scheduledTime": "2999-01-01T00:00:00Z"},
            },
            {"id": "approved", "type": "End"},
            {"id": "withdrawn", "type": "End"},
        ],
        [
            {"from": "start", "to": "wait"},
            {"from": "wait", "to": "withdrawn", "condition": "cancelled"},
            {"from": "wait", "to": "approved"},
        ],
    )
    engine, repo = await _engine(schema)
    assert await engine.validate_workflow_definition(schema)

    started = await engine.start_workflow("cooling-off", "Loan", "alice")
    assert started.status == ActivityStatus.PENDING
    assert started.instance.current_assignee is None

    early = await engine.resume_workflow(started.instance.id, "wait", "scheduler")
    assert early.status == ActivityStatus.PENDING
    assert early.instance.status == WorkflowStatus.SUSPENDED

    withdrawn = await engine.resume_workflow(
        started.instance.id, "wait", "alice", {"cancelled": True}
    )
    assert withdrawn.status == ActivityStatus.COMPLETED
    stored = await repo.get_instance(started.instance.id)
    assert [e.activity_id for e in stored.executions] == ["start", "wait", "withdrawn"]
    assert stored.executions[1].completed_by == "alice"
