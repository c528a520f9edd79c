"""Workflow engine composing activities, flow control and lifecycle."""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from ..activities import ActivityFactory, build_activity_factory
from ..assignment import CascadingAssignmentEngine
from ..config import CaseflowConfig, load_config
from ..constants import (
    CHECKPOINT_ACTIVITY_FAILED,
    CHECKPOINT_CANCELLED,
    CHECKPOINT_COMPLETED,
    CHECKPOINT_MAX_STEPS,
    CHECKPOINT_UNEXPECTED_ERROR,
)
from ..contracts import ActivityDefinition, WorkflowSchema
from ..exceptions import (
    InstanceNotFound,
    SchemaNotFound,
    UnknownActivityType,
    WorkflowDefinitionError,
    WorkflowStateError,
)
from ..models import (
    ActivityContext,
    ActivityExecution,
    ActivityResult,
    ActivityStatus,
    ExecutionStatus,
    RuntimeOverride,
    WorkflowExecutionResult,
    WorkflowInstance,
    WorkflowStatus,
    utcnow,
)
from ..persistence import WorkflowRepository
from .flow_control import FlowControlResolver
from .lifecycle import LifecycleManager
from .state import StateManager

logger = logging.getLogger(__name__)

FAILURE_ACTIVITY = "activity_failed"
FAILURE_MAX_STEPS = "max_steps_exceeded"
FAILURE_UNEXPECTED = "unexpected_error"


@dataclass(frozen=True)
class FreshStep:
    definition: ActivityDefinition
    kind: Literal["fresh"] = "fresh"


@dataclass(frozen=True)
class ResumeStep:
    definition: ActivityDefinition
    resume_input: Dict[str, Any] = field(default_factory=dict)
    kind: Literal["resume"] = "resume"


ExecutionStep = Union[FreshStep, ResumeStep]


class WorkflowEngine:
    """Runs workflow instances until they finish or wait for a person.

    Every call runs inside the caller's coroutine. Instances are
    independent; calls touching the same instance are serialized
    in-process and guarded by the current-activity check on resume.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        activity_factory: Optional[ActivityFactory] = None,
        config: Optional[CaseflowConfig] = None,
        flow_control: Optional[FlowControlResolver] = None,
        lifecycle: Optional[LifecycleManager] = None,
        state_manager: Optional[StateManager] = None,
    ) -> None:
        self.config = config or load_config()
        self.repository = repository
        self.activity_factory = activity_factory or build_activity_factory(
            CascadingAssignmentEngine(
                default_admin_pool=self.config.assignment.default_admin_pool
            )
        )
        self.flow_control = flow_control or FlowControlResolver()
        self.lifecycle = lifecycle or LifecycleManager()
        self.state = state_manager or StateManager(repository)
        self.max_steps = self.config.engine.max_steps
        self._instance_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    # ------------------------------------------------------------------
    # Public API
    async def register_schema(self, schema: WorkflowSchema) -> None:
        await self.repository.save_schema(schema)

    async def start_workflow(
        self,
        schema_id: str,
        name: str,
        started_by: str,
        initial_variables: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        runtime_overrides: Optional[Mapping[str, RuntimeOverride]] = None,
    ) -> WorkflowExecutionResult:
        """Create an instance of ``schema_id`` and run it to its first stop."""
        schema = await self._load_schema(schema_id)
        self._ensure_activity_types(schema)
        start = self.flow_control.get_start_activity(schema)

        instance = self.lifecycle.initialize_workflow(
            schema,
            start.id,
            name=name,
            started_by=started_by,
            initial_variables=initial_variables,
            correlation_id=correlation_id,
            runtime_overrides=dict(runtime_overrides or {}),
        )
        logger.info(f"Starting workflow {instance.id} ({name}) from schema {schema_id}")
        return await self.execute_workflow(schema, instance, start)

    async def execute_workflow(
        self,
        schema: WorkflowSchema,
        instance: WorkflowInstance,
        activity: ActivityDefinition,
        resume_input: Optional[Dict[str, Any]] = None,
    ) -> WorkflowExecutionResult:
        """Run ``instance`` from ``activity``.

        With ``resume_input`` on a suspended instance the activity is
        resumed instead of executed fresh. Raises ``WorkflowStateError``
        without touching the instance when it has already finished, or when
        it is suspended and no ``resume_input`` is given.
        """
        if instance.status.is_terminal:
            raise WorkflowStateError(
                f"Cannot execute {activity.id} on {instance.status.value} workflow {instance.id}"
            )
        if instance.status == WorkflowStatus.SUSPENDED and resume_input is None:
            raise WorkflowStateError(
                f"Workflow {instance.id} is suspended at {instance.current_activity_id}; "
                "resume it with input instead"
            )
        step: ExecutionStep
        if resume_input is not None and instance.status == WorkflowStatus.SUSPENDED:
            step = ResumeStep(activity, dict(resume_input))
        else:
            step = FreshStep(activity)
        return await self._run(schema, instance, step)

    async def resume_workflow(
        self,
        instance_id: str,
        activity_id: str,
        completed_by: str,
        input: Optional[Dict[str, Any]] = None,
        runtime_overrides: Optional[Mapping[str, RuntimeOverride]] = None,
    ) -> WorkflowExecutionResult:
        """Continue a suspended instance at ``activity_id``.

        Raises ``ActivityMismatch`` without touching the instance when
        ``activity_id`` is not the activity the instance is waiting on.
        """
        async with self._lock_for(instance_id):
            instance = await self.repository.get_instance(instance_id)
            if instance is None:
                raise InstanceNotFound(instance_id)
            schema = await self._load_schema(instance.schema_id)
            self.state.validate_resume_state(instance, activity_id)
            definition = schema.get_activity(activity_id)
            if definition is None:
                raise WorkflowDefinitionError(
                    f"Activity '{activity_id}' is not declared in schema '{schema.id}'"
                )
            self._ensure_activity_types(schema)

            if runtime_overrides:
                self.state.update_runtime_overrides(instance, runtime_overrides)
            resume_input = {**(input or {}), "completedBy": completed_by}
            logger.info(f"Resuming workflow {instance_id} at {activity_id} by {completed_by}")
            return await self.execute_workflow(schema, instance, definition, resume_input)

    async def resume_by_correlation_id(
        self,
        correlation_id: str,
        activity_id: str,
        completed_by: str,
        input: Optional[Dict[str, Any]] = None,
        runtime_overrides: Optional[Mapping[str, RuntimeOverride]] = None,
    ) -> WorkflowExecutionResult:
        instance = await self.repository.get_instance_by_correlation_id(correlation_id)
        if instance is None:
            raise InstanceNotFound(correlation_id)
        return await self.resume_workflow(
            instance.id, activity_id, completed_by, input, runtime_overrides
        )

    async def cancel_workflow(
        self, instance_id: str, cancelled_by: str, reason: Optional[str] = None
    ) -> WorkflowInstance:
        async with self._lock_for(instance_id):
            instance = await self.repository.get_instance(instance_id)
            if instance is None:
                raise InstanceNotFound(instance_id)
            self.lifecycle.transition_workflow_state(
                instance, WorkflowStatus.CANCELLED, reason or f"Cancelled by {cancelled_by}"
            )
            await self.state.create_checkpoint(instance, CHECKPOINT_CANCELLED)
            return instance

    async def override_assignment(
        self, instance_id: str, activity_id: str, override: RuntimeOverride
    ) -> WorkflowInstance:
        """Record a runtime assignment override on a live instance."""
        async with self._lock_for(instance_id):
            instance = await self.repository.get_instance(instance_id)
            if instance is None:
                raise InstanceNotFound(instance_id)
            if instance.status.is_terminal:
                raise WorkflowStateError(
                    f"Cannot override assignment on {instance.status.value} workflow {instance_id}"
                )
            schema = await self._load_schema(instance.schema_id)
            if schema.get_activity(activity_id) is None:
                raise WorkflowDefinitionError(
                    f"Activity '{activity_id}' is not declared in schema '{schema.id}'"
                )
            self.state.update_runtime_overrides(instance, {activity_id: override})
            await self.state.persist_instance(instance)
            return instance

    async def execute_activity(
        self, definition: ActivityDefinition, context: ActivityContext
    ) -> ActivityResult:
        """Run an activity fresh; its exceptions become failed results."""
        try:
            activity = self.activity_factory.create(definition.type)
            context.config = self.activity_factory.parse_config(definition, context.properties)
            return await activity.execute(context)
        except Exception as e:
            logger.error(f"Activity {definition.id} ({definition.type}) raised: {e}", exc_info=True)
            return ActivityResult.failed(str(e) or type(e).__name__)

    async def resume_activity(
        self,
        definition: ActivityDefinition,
        context: ActivityContext,
        resume_input: Dict[str, Any],
    ) -> ActivityResult:
        """Resume an activity; its exceptions become failed results."""
        try:
            activity = self.activity_factory.create(definition.type)
            context.config = self.activity_factory.parse_config(definition, context.properties)
            return await activity.resume(context, resume_input)
        except Exception as e:
            logger.error(
                f"Activity {definition.id} ({definition.type}) raised on resume: {e}",
                exc_info=True,
            )
            return ActivityResult.failed(str(e) or type(e).__name__)

    async def validate_workflow_definition(self, schema: WorkflowSchema) -> bool:
        """Return whether ``schema`` can be executed. Never raises."""
        try:
            errors = await self.collect_validation_errors(schema)
        except Exception as e:
            logger.error(f"Validation of workflow {schema.id} raised: {e}", exc_info=True)
            return False
        for error in errors:
            logger.warning(f"Workflow {schema.id} invalid: {error}")
        return not errors

    async def collect_validation_errors(self, schema: WorkflowSchema) -> List[str]:
        errors: List[str] = []
        if not schema.name.strip():
            errors.append("Workflow name is required")
        if not schema.activities:
            errors.append("Workflow must declare at least one activity")
            return errors
        errors.extend(self.flow_control.validate_workflow_transitions(schema))

        sample = WorkflowInstance(
            schema_id=schema.id,
            name=f"{schema.name} (validation)",
            status=WorkflowStatus.RUNNING,
            variables=dict(schema.variables),
        )
        for definition in schema.activities:
            if not self.activity_factory.is_registered(definition.type):
                errors.append(f"Activity '{definition.id}' has unknown type '{definition.type}'")
                continue
            context = self.build_context(sample, definition)
            try:
                activity = self.activity_factory.create(definition.type)
                context.config = self.activity_factory.parse_config(definition, context.properties)
                problems = await activity.validate(context)
            except Exception as e:
                problems = [f"validation raised {type(e).__name__}: {e}"]
            errors.extend(f"Activity '{definition.id}': {p}" for p in problems)
        return errors

    def build_context(
        self, instance: WorkflowInstance, definition: ActivityDefinition
    ) -> ActivityContext:
        override = instance.runtime_overrides.get(definition.id)
        properties = dict(definition.properties)
        if override is not None:
            properties.update(override.override_properties)
        return ActivityContext(
            activity_id=definition.id,
            activity_type=definition.type,
            instance=instance,
            activity_name=definition.name,
            properties=properties,
            runtime_override=override,
        )

    # ------------------------------------------------------------------
    # Orchestration loop
    async def _run(
        self, schema: WorkflowSchema, instance: WorkflowInstance, step: ExecutionStep
    ) -> WorkflowExecutionResult:
        mutated = False
        executed = 0
        try:
            while True:
                if executed >= self.max_steps:
                    mutated = True
                    message = (
                        f"Workflow exceeded the maximum of {self.max_steps} steps "
                        f"at activity {step.definition.id}"
                    )
                    return await self._fail(
                        instance, message, CHECKPOINT_MAX_STEPS, FAILURE_MAX_STEPS
                    )

                definition = step.definition
                context = self.build_context(instance, definition)
                if step.kind == "resume":
                    result = await self.resume_activity(definition, context, step.resume_input)
                else:
                    result = await self.execute_activity(definition, context)
                executed += 1

                mutated = True
                if step.kind == "resume" and instance.status == WorkflowStatus.SUSPENDED:
                    self.lifecycle.resume_workflow(instance)
                self._record_execution(instance, step, result)
                self.state.merge_variables(instance, result.output)

                if result.status == ActivityStatus.FAILED:
                    message = result.error or f"Activity {definition.id} failed"
                    return await self._fail(
                        instance, message, CHECKPOINT_ACTIVITY_FAILED, FAILURE_ACTIVITY
                    )

                if result.status == ActivityStatus.PENDING:
                    instance.current_assignee = result.assignee
                    self.lifecycle.suspend_workflow(
                        instance, f"Awaiting external completion of {definition.id}"
                    )
                    await self.state.persist_instance(instance)
                    return WorkflowExecutionResult(
                        status=ActivityStatus.PENDING,
                        instance=instance,
                        next_activity_id=definition.id,
                        requires_external_completion=True,
                    )

                next_id = self.flow_control.determine_next_activity(
                    schema, definition.id, result, instance.variables
                )
                if next_id is None:
                    self.lifecycle.complete_workflow(instance, CHECKPOINT_COMPLETED)
                    await self.state.create_checkpoint(instance, CHECKPOINT_COMPLETED)
                    return WorkflowExecutionResult(
                        status=ActivityStatus.COMPLETED, instance=instance
                    )

                next_definition = schema.get_activity(next_id)
                if next_definition is None:
                    raise WorkflowDefinitionError(
                        f"Transition from {definition.id} targets unknown activity '{next_id}'"
                    )
                self.lifecycle.advance_workflow(instance, next_id)
                step = FreshStep(next_definition)
        except Exception as e:
            if not mutated:
                raise
            logger.error(
                f"Unexpected error while running workflow {instance.id}: {e}", exc_info=True
            )
            return await self._fail_safe(instance, e)

    async def _fail(
        self,
        instance: WorkflowInstance,
        message: str,
        checkpoint_reason: str,
        failure_kind: str,
    ) -> WorkflowExecutionResult:
        self.lifecycle.transition_workflow_state(instance, WorkflowStatus.FAILED, message)
        await self.state.create_checkpoint(instance, checkpoint_reason)
        return WorkflowExecutionResult(
            status=ActivityStatus.FAILED,
            instance=instance,
            error_message=message,
            failure_kind=failure_kind,
        )

    async def _fail_safe(
        self, instance: WorkflowInstance, error: Exception
    ) -> WorkflowExecutionResult:
        message = f"Unexpected error: {error}"
        if not instance.status.is_terminal:
            self.lifecycle.transition_workflow_state(instance, WorkflowStatus.FAILED, message)
            await self.state.create_checkpoint(instance, CHECKPOINT_UNEXPECTED_ERROR)
        if instance.status == WorkflowStatus.COMPLETED:
            return WorkflowExecutionResult(status=ActivityStatus.COMPLETED, instance=instance)
        return WorkflowExecutionResult(
            status=ActivityStatus.FAILED,
            instance=instance,
            error_message=instance.error_message or message,
            failure_kind=FAILURE_UNEXPECTED,
        )

    # ------------------------------------------------------------------
    # Helpers
    def _record_execution(
        self, instance: WorkflowInstance, step: ExecutionStep, result: ActivityResult
    ) -> None:
        definition = step.definition
        execution = None
        if step.kind == "resume":
            execution = instance.open_execution(definition.id)
        if execution is None:
            execution = ActivityExecution(activity_id=definition.id, activity_type=definition.type)
            instance.executions.append(execution)

        if result.status == ActivityStatus.PENDING:
            execution.assigned_to = result.assignee
            return
        execution.completed_at = utcnow()
        execution.output = dict(result.output)
        if step.kind == "resume":
            execution.completed_by = step.resume_input.get("completedBy")
        if result.status == ActivityStatus.FAILED:
            execution.status = ExecutionStatus.FAILED
            execution.error = result.error
        else:
            execution.status = ExecutionStatus.COMPLETED

    def _ensure_activity_types(self, schema: WorkflowSchema) -> None:
        for definition in schema.activities:
            if not self.activity_factory.is_registered(definition.type):
                raise UnknownActivityType(definition.type)

    async def _load_schema(self, schema_id: str) -> WorkflowSchema:
        schema = await self.repository.get_schema(schema_id)
        if schema is None:
            raise SchemaNotFound(schema_id)
        return schema

    def _lock_for(self, instance_id: str) -> asyncio.Lock:
        lock = self._instance_locks.get(instance_id)
        if lock is None:
            lock = asyncio.Lock()
            self._instance_locks[instance_id] = lock
        return lock
