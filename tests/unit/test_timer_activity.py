"""Tests for the timer activity."""

from datetime import datetime, timedelta, timezone

import pytest

from caseflow import ActivityContext, ActivityStatus, WorkflowInstance
from caseflow.activities import TimerActivity

PAST = "2000-01-01T00:00:00+00:00"
FUTURE = "2999-01-01T00:00:00+00:00"


def _context(variables=None, **properties):
    return ActivityContext(
        activity_id="cooling-off",
        activity_type="Timer",
        instance=WorkflowInstance(schema_id="loan", variables=dict(variables or {})),
        properties=properties,
    )


@pytest.mark.asyncio
async def test_timer_with_passed_schedule_completes_immediately():
    result = await TimerActivity().execute(_context(scheduledTime=PAST))
    assert result.status == ActivityStatus.COMPLETED
    assert result.decision == "elapsed"
    assert result.output["cooling_off_wasDelayed"] is False


@pytest.mark.asyncio
async def test_timer_waits_for_duration():
    before = datetime.now(timezone.utc)
    result = await TimerActivity().execute(_context(duration=3600, timerName="Cooling off"))

    assert result.status == ActivityStatus.PENDING
    assert result.assignee is None
    target = datetime.fromisoformat(result.output["cooling_off_scheduledTime"])
    assert target - before >= timedelta(hours=1)
    assert result.output["cooling_off_timerName"] == "Cooling off"
    assert result.output["cooling_off_allowEarlyCancellation"] is True


@pytest.mark.asyncio
async def test_naive_schedule_is_treated_as_utc():
    result = await TimerActivity().execute(_context(scheduledTime="2999-01-01T00:00:00"))
    assert result.output["cooling_off_scheduledTime"] == FUTURE


@pytest.mark.asyncio
async def test_resume_after_due_time_completes():
    context = _context({"cooling_off_scheduledTime": PAST})
    result = await TimerActivity().resume(context, {"completedBy": "scheduler"})
    assert result.status == ActivityStatus.COMPLETED
    assert result.decision == "elapsed"
    assert result.output["cooling_off_wasDelayed"] is True


@pytest.mark.asyncio
async def test_early_resume_keeps_waiting():
    context = _context({"cooling_off_scheduledTime": FUTURE})
    result = await TimerActivity().resume(context, {"completedBy": "scheduler"})
    assert result.status == ActivityStatus.PENDING
    assert result.output["cooling_off_scheduledTime"] == FUTURE


@pytest.mark.asyncio
async def test_early_cancellation():
    variables = {"cooling_off_scheduledTime": FUTURE}
    cancelled = await TimerActivity().resume(_context(variables), {"cancelled": True})
    assert cancelled.status == ActivityStatus.COMPLETED
    assert cancelled.decision == "cancelled"
    assert cancelled.output["cooling_off_decisionTaken"] == "cancelled"

    locked = await TimerActivity().resume(
        _context(variables, allowEarlyCancellation=False), {"cancelled": True}
    )
    assert locked.status == ActivityStatus.PENDING


@pytest.mark.asyncio
async def test_validation_rejects_non_positive_duration():
    assert await TimerActivity().validate(_context(duration="PT30M")) == []
    assert await TimerActivity().validate(_context(duration=0)) == [
        "'duration' must be positive when no 'scheduledTime' is given"
    ]
    assert await TimerActivity().validate(_context(duration=0, scheduledTime=FUTURE)) == []
