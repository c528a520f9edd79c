"""Workflow execution engine."""

from .engine import ExecutionStep, FreshStep, ResumeStep, WorkflowEngine
from .flow_control import FlowControlResolver
from .lifecycle import ALLOWED_TRANSITIONS, LifecycleManager, can_transition
from .state import StateManager

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ExecutionStep",
    "FlowControlResolver",
    "FreshStep",
    "LifecycleManager",
    "ResumeStep",
    "StateManager",
    "WorkflowEngine",
    "can_transition",
]
