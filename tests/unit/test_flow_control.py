"""Tests for transition resolution and graph validation."""

import pytest

from caseflow import ActivityResult, WorkflowSchema
from caseflow.engine import FlowControlResolver
from caseflow.exceptions import WorkflowDefinitionError


def _schema(activities, transitions):
    return WorkflowSchema.model_validate(
        {
            "id": "loan-review",
            "name": "Loan review",
            "activities": [{"id": a, "type": "Task"} for a in activities],
            "transitions": transitions,
        }
    )


def _review_schema():
    return _schema(
        ["start", "review", "approve", "reject", "archive"],
        [
            {"from": "start", "to": "review"},
            {"from": "review", "to": "approve", "condition": "approved"},
            {"from": "review", "to": "reject", "condition": "rejected"},
            {"from": "review", "to": "archive"},
        ],
    )


def test_decision_key_matches_case_insensitively():
    resolver = FlowControlResolver()
    schema = _review_schema()
    result = ActivityResult.completed(decision="APPROVED")
    assert resolver.determine_next_activity(schema, "review", result, {}) == "approve"


def test_decision_from_output_is_used_when_result_has_none():
    resolver = FlowControlResolver()
    result = ActivityResult.completed({"decision": "rejected"})
    assert resolver.determine_next_activity(_review_schema(), "review", result, {}) == "reject"


def test_unguarded_transition_is_the_fallback():
    resolver = FlowControlResolver()
    result = ActivityResult.completed(decision="escalate")
    assert resolver.determine_next_activity(_review_schema(), "review", result, {}) == "archive"


def test_first_matching_transition_wins_in_declaration_order():
    resolver = FlowControlResolver()
    schema = _schema(
        ["start", "a", "b"],
        [
            {"from": "start", "to": "a", "condition": "amount > 10"},
            {"from": "start", "to": "b", "condition": "amount > 5"},
        ],
    )
    result = ActivityResult.completed()
    assert resolver.determine_next_activity(schema, "start", result, {"amount": 50}) == "a"
    assert resolver.determine_next_activity(schema, "start", result, {"amount": 7}) == "b"
    assert resolver.determine_next_activity(schema, "start", result, {"amount": 1}) is None


def test_guard_sees_activity_output_and_decision():
    resolver = FlowControlResolver()
    schema = _schema(
        ["score", "high", "low"],
        [
            {"from": "score", "to": "high", "condition": "score > 5 && decision == 'scored'"},
            {"from": "score", "to": "low"},
        ],
    )
    result = ActivityResult.completed({"score": 10}, decision="scored")
    assert resolver.determine_next_activity(schema, "score", result, {"score": 1}) == "high"


def test_activity_without_outgoing_transitions_ends_the_workflow():
    resolver = FlowControlResolver()
    result = ActivityResult.completed()
    assert resolver.determine_next_activity(_review_schema(), "approve", result, {}) is None


def test_unparseable_guard_is_treated_as_not_matching():
    resolver = FlowControlResolver()
    schema = _schema(
        ["start", "broken", "fallback"],
        [
            {"from": "start", "to": "broken", "condition": "amount >"},
            {"from": "start", "to": "fallback"},
        ],
    )
    result = ActivityResult.completed()
    assert resolver.determine_next_activity(schema, "start", result, {"amount": 1}) == "fallback"


def test_resolution_is_deterministic():
    resolver = FlowControlResolver()
    schema = _review_schema()
    result = ActivityResult.completed(decision="rejected")
    outcomes = {
        resolver.determine_next_activity(schema, "review", result, {"x": 1}) for _ in range(50)
    }
    assert outcomes == {"reject"}


def test_start_activity_is_the_one_without_incoming_transitions():
    resolver = FlowControlResolver()
    assert resolver.get_start_activity(_review_schema()).id == "start"


def test_multiple_or_missing_start_activities_raise():
    resolver = FlowControlResolver()
    two_starts = _schema(["a", "b", "c"], [{"from": "a", "to": "c"}, {"from": "b", "to": "c"}])
    with pytest.raises(WorkflowDefinitionError):
        resolver.get_start_activity(two_starts)

    cycle = _schema(["a", "b"], [{"from": "a", "to": "b"}, {"from": "b", "to": "a"}])
    with pytest.raises(WorkflowDefinitionError):
        resolver.get_start_activity(cycle)


def test_valid_graph_has_no_errors():
    resolver = FlowControlResolver()
    assert resolver.validate_workflow_transitions(_review_schema()) == []


def test_bare_decision_keys_are_not_parsed_as_expressions():
    resolver = FlowControlResolver()
    schema = _schema(
        ["start", "done"],
        [{"from": "start", "to": "done", "condition": "approved-with-changes"}],
    )
    assert resolver.validate_workflow_transitions(schema) == []


def test_validation_reports_unknown_targets_and_bad_guards():
    resolver = FlowControlResolver()
    schema = _schema(
        ["start", "review"],
        [
            {"from": "start", "to": "review", "condition": "amount >"},
            {"from": "review", "to": "nowhere"},
        ],
    )
    errors = resolver.validate_workflow_transitions(schema)
    assert any("unknown target activity 'nowhere'" in e for e in errors)
    assert any("Invalid guard" in e for e in errors)


def test_validation_reports_unreachable_activities():
    resolver = FlowControlResolver()
    schema = _schema(
        ["start", "end", "island-a", "island-b"],
        [
            {"from": "start", "to": "end"},
            {"from": "island-a", "to": "island-b"},
            {"from": "island-b", "to": "island-a"},
        ],
    )
    errors = resolver.validate_workflow_transitions(schema)
    assert errors == ["Activities unreachable from start: island-a, island-b"]


def test_validation_reports_duplicate_ids():
    resolver = FlowControlResolver()
    schema = _schema(["start", "review", "review"], [{"from": "start", "to": "review"}])
    errors = resolver.validate_workflow_transitions(schema)
    assert "Duplicate activity ids: review" in errors
