"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.assignment import TaskAssignment
from src.domain.blocker import Blocker
from src.domain.task import Task
from src.domain.types import UtcDatetime


class EligibilityRule(StrEnum):
    """Eligibility rules, in evaluation order."""

    STATUS = "status"
    DEPENDENCIES = "dependencies"
    TIME_WINDOW = "time_window"
    TIME_CONSTRAINT = "time_constraint"
    WEATHER = "weather"
    LOCATION = "location"


class EligibilityResult(BaseModel):
    """Outcome of an eligibility check, naming the first failing rule."""

    eligible: bool
    failed_rule: EligibilityRule | None = None
    reason: str | None = None

    @classmethod
    def ok(cls) -> "EligibilityResult":
        return cls(eligible=True)

    @classmethod
    def fail(cls, rule: EligibilityRule, reason: str) -> "EligibilityResult":
        return cls(eligible=False, failed_rule=rule, reason=reason)


class BlockerReport(BaseModel):
    """Result of reporting a blocker."""

    blocker: Blocker
    subtasks: list[Task] = Field(default_factory=list, description="New sub-tasks in suggested order")
    degraded: bool = Field(default=False, description="Decomposition failed; blocker recorded without sub-tasks")
    error: str | None = Field(default=None, description="Why decomposition failed")


class UserTaskStats(BaseModel):
    """Completion statistics for a user."""

    user_id: str
    completed_count: int
    blocked_count: int
    gratification_count: int
    last_completion_at: UtcDatetime | None = None


class BatchHint(BaseModel):
    """Other eligible tasks that share a category and could be done together."""

    task_id: str
    category: str | None = None
    batch_compatible: bool = False
    companion_tasks: list[Task] = Field(default_factory=list)


class GeneratedInstance(BaseModel):
    """Task instance created from a recurring schedule."""

    schedule_id: str
    task: Task


class CompletionResult(BaseModel):
    """Outcome of completing an assignment."""

    assignment: TaskAssignment
    task: Task
    gratification_message: str
    unblocked_task_ids: list[str] = Field(default_factory=list, description="Dependents returned to pending")
