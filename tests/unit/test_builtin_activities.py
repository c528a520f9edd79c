"""Tests for the built-in control activities."""

import pytest

from caseflow import ActivityContext, ActivityStatus, WorkflowInstance
from caseflow.activities import EndActivity, IfElseActivity, StartActivity, SwitchActivity


def _context(activity_type, variables=None, **properties):
    return ActivityContext(
        activity_id="step",
        activity_type=activity_type,
        instance=WorkflowInstance(
            schema_id="appraisal", started_by="alice", variables=dict(variables or {})
        ),
        properties=properties,
    )


@pytest.mark.asyncio
async def test_start_and_end_complete_immediately():
    start = await StartActivity().execute(_context("Start"))
    assert start.status == ActivityStatus.COMPLETED
    assert start.output["startedBy"] == "alice"
    assert "workflowStartedAt" in start.output

    end = await EndActivity().execute(_context("End"))
    assert end.status == ActivityStatus.COMPLETED
    assert "workflowCompletedAt" in end.output


@pytest.mark.asyncio
async def test_if_else_emits_true_or_false_decision():
    activity = IfElseActivity()
    high = await activity.execute(_context("IfElse", {"amount": 5000}, condition="amount > 1000"))
    assert high.decision == "true"
    assert high.output == {
        "step_condition": "amount > 1000",
        "step_result": True,
        "step_decisionTaken": "true",
    }

    low = await activity.execute(_context("IfElse", {"amount": 5}, condition="amount > 1000"))
    assert low.decision == "false"


@pytest.mark.asyncio
async def test_if_else_failures():
    activity = IfElseActivity()
    missing = await activity.execute(_context("IfElse"))
    assert missing.status == ActivityStatus.FAILED
    assert missing.error == "Missing required 'condition' property"

    broken = await activity.execute(_context("IfElse", condition="amount >"))
    assert broken.status == ActivityStatus.FAILED
    assert broken.error.startswith("Condition evaluation failed")


@pytest.mark.asyncio
async def test_switch_matches_operator_cases_in_order():
    activity = SwitchActivity()
    context = _context(
        "Switch", {"amount": 150}, expression="amount", cases=["> 1000", "> 100", "> 10"]
    )
    result = await activity.execute(context)
    assert result.decision == "> 100"
    assert result.output["step_expressionResult"] == 150
    assert result.output["step_case"] == "> 100"
    assert result.output["step_decisionTaken"] == "> 100"
    assert "case" not in result.output


@pytest.mark.asyncio
async def test_switch_matches_literal_cases_ignoring_case_and_quotes():
    activity = SwitchActivity()
    gold = await activity.execute(
        _context("Switch", {"tier": "GOLD"}, expression="tier", cases=["silver", "gold"])
    )
    assert gold.decision == "gold"

    quoted = await activity.execute(
        _context("Switch", {"tier": "silver"}, expression="tier", cases=["'silver'", "gold"])
    )
    assert quoted.decision == "'silver'"

    contains = await activity.execute(
        _context("Switch", {"tags": ["urgent"]}, expression="tags", cases=["contains 'urgent'"])
    )
    assert contains.decision == "contains 'urgent'"


@pytest.mark.asyncio
async def test_switch_falls_back_to_default():
    result = await SwitchActivity().execute(
        _context("Switch", {"tier": "bronze"}, expression="tier", cases=["silver", "gold"])
    )
    assert result.decision == "default"
    assert result.output["step_case"] == "default"


@pytest.mark.asyncio
async def test_switch_requires_expression_and_cases():
    activity = SwitchActivity()
    no_expression = await activity.execute(_context("Switch", cases=["a"]))
    assert no_expression.error == "Missing required 'expression' property"
    no_cases = await activity.execute(_context("Switch", expression="tier"))
    assert no_cases.error == "Missing or empty 'cases' property"


@pytest.mark.asyncio
async def test_control_activities_do_not_resume():
    result = await IfElseActivity().resume(_context("IfElse", condition="true"), {"x": 1})
    assert result.status == ActivityStatus.FAILED
    assert result.error == "IfElse does not support resume operations"


@pytest.mark.asyncio
async def test_validation_of_control_activities():
    assert await IfElseActivity().validate(_context("IfElse", condition="a == 1")) == []
    assert await IfElseActivity().validate(_context("IfElse")) == [
        "'condition' property is required for IfElse"
    ]
    invalid = await IfElseActivity().validate(_context("IfElse", condition="a = 1"))
    assert invalid[0].startswith("Invalid condition syntax")

    assert await SwitchActivity().validate(_context("Switch", expression="tier", cases=["a"])) == []
    errors = await SwitchActivity().validate(_context("Switch", cases=["a", " "]))
    assert "'expression' property is required for Switch" in errors
    assert "Case conditions cannot be empty" in errors
