"""Timer activity that holds a workflow until a target time."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from ..models import ActivityContext, ActivityResult, utcnow
from .base import ActivityConfig, WorkflowActivity, normalize_activity_id

logger = logging.getLogger(__name__)

TIMER_ELAPSED = "elapsed"
TIMER_CANCELLED = "cancelled"


class TimerConfig(ActivityConfig):
    """``duration`` accepts seconds or an ISO 8601 duration such as ``PT2H``."""

    model_config = ConfigDict(alias_generator=to_camel)

    duration: timedelta = timedelta(minutes=5)
    scheduled_time: Optional[datetime] = None
    timer_name: Optional[str] = None
    allow_early_cancellation: bool = True


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TimerActivity(WorkflowActivity):
    """Waits until ``scheduledTime`` or for ``duration``.

    The engine owns no clock. Whatever scheduler watches the due time
    resumes the activity; a resume before the due time keeps it waiting
    unless it carries ``cancelled`` and early cancellation is allowed.
    """

    activity_type = "Timer"
    description = "Waits for a duration or until a scheduled time before continuing"
    config_model = TimerConfig

    async def execute(self, context: ActivityContext) -> ActivityResult:
        config = self.config(context)
        prefix = normalize_activity_id(context.activity_id)
        now = utcnow()
        if config.scheduled_time is not None:
            target = _as_utc(config.scheduled_time)
        else:
            target = now + config.duration

        if target <= now:
            logger.info(f"Timer {context.activity_id} target {target} already passed")
            return ActivityResult.completed(
                {
                    f"{prefix}_completedAt": now.isoformat(),
                    f"{prefix}_wasDelayed": False,
                    f"{prefix}_decisionTaken": TIMER_ELAPSED,
                },
                decision=TIMER_ELAPSED,
            )

        logger.info(f"Timer {context.activity_id} waiting until {target.isoformat()}")
        return ActivityResult.pending(
            {
                f"{prefix}_scheduledTime": target.isoformat(),
                f"{prefix}_timerName": config.timer_name or "Timer",
                f"{prefix}_duration": str(config.duration),
                f"{prefix}_allowEarlyCancellation": config.allow_early_cancellation,
            }
        )

    async def resume(
        self, context: ActivityContext, resume_input: Dict[str, Any]
    ) -> ActivityResult:
        config = self.config(context)
        prefix = normalize_activity_id(context.activity_id)
        now = utcnow()
        scheduled = context.variables.get(f"{prefix}_scheduledTime")
        target = _as_utc(datetime.fromisoformat(scheduled)) if scheduled else now

        if resume_input.get("cancelled"):
            if config.allow_early_cancellation:
                logger.info(f"Timer {context.activity_id} cancelled before {target.isoformat()}")
                return ActivityResult.completed(
                    {
                        f"{prefix}_completedAt": now.isoformat(),
                        f"{prefix}_wasDelayed": now < target,
                        f"{prefix}_decisionTaken": TIMER_CANCELLED,
                    },
                    decision=TIMER_CANCELLED,
                )
            logger.warning(f"Timer {context.activity_id} does not allow early cancellation")

        if now < target:
            logger.info(f"Timer {context.activity_id} resumed early, still waiting")
            return ActivityResult.pending({f"{prefix}_scheduledTime": target.isoformat()})

        return ActivityResult.completed(
            {
                f"{prefix}_completedAt": now.isoformat(),
                f"{prefix}_wasDelayed": True,
                f"{prefix}_decisionTaken": TIMER_ELAPSED,
            },
            decision=TIMER_ELAPSED,
        )

    async def validate(self, context: ActivityContext) -> List[str]:
        config = self.config(context)
        if config.scheduled_time is None and config.duration <= timedelta(0):
            return ["'duration' must be positive when no 'scheduledTime' is given"]
        return []
