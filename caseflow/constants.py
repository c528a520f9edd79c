"""Shared constants for caseflow."""

DEFAULT_MAX_STEPS = 1000
DEFAULT_ADMIN_POOL = "ADMIN_POOL"

# Checkpoint reasons
CHECKPOINT_COMPLETED = "Workflow completed successfully"
CHECKPOINT_ACTIVITY_FAILED = "Activity failed - workflow terminated"
CHECKPOINT_CANCELLED = "Workflow cancelled"
CHECKPOINT_MAX_STEPS = "Maximum step count exceeded - workflow terminated"
CHECKPOINT_UNEXPECTED_ERROR = "Unexpected error - workflow terminated"

# Decision key emitted by task activities when no handler could be resolved
ASSIGNMENT_FAILED = "assignment_failed"
