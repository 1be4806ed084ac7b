"""Exception hierarchy for planning and orchestration."""

from typing import List, Optional


class OrchestrationError(Exception):
    """Base exception for all orchestration errors."""
    pass


# ==================== Plan Errors ====================

class PlanError(OrchestrationError):
    """The task plan cannot be scheduled."""
    pass


class ValidationError(PlanError):
    """Duplicate ids, dangling dependencies or self-dependencies."""
    def __init__(self, errors: List[str]):
        super().__init__(f"Invalid task plan: {', '.join(errors)}")
        self.errors = list(errors)


class CycleError(PlanError):
    """The dependency relation contains a cycle."""
    def __init__(self, message: str = "Circular dependencies detected in task plan"):
        super().__init__(message)


# ==================== Run Errors ====================

class TaskError(OrchestrationError):
    """A single task's remote call failed."""
    def __init__(self, task_id: str, message: str):
        super().__init__(message)
        self.task_id = task_id
        self.message = message


class PhaseError(OrchestrationError):
    """A phase of the run failed and the run cannot continue."""
    def __init__(self, phase: str, message: str, cause: Optional[Exception] = None):
        super().__init__(f"{phase} phase failed: {message}")
        self.phase = phase
        self.cause = cause
