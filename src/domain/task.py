"""Task domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.types import UtcDatetime


class TaskStatus(StrEnum):
    """Task lifecycle status."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TimeConstraintType(StrEnum):
    """Which time rule decides when a task may be worked on."""

    ABSOLUTE = "absolute"  # Fixed start/end timestamps
    RELATIVE_TIME_OF_DAY = "relative_time_of_day"  # Morning, afternoon, evening or night
    RELATIVE_SOLAR = "relative_solar"  # Between dawn and dusk
    BUSINESS_HOURS = "business_hours"  # Weekdays within the business-hours band
    AFTER_EVENT = "after_event"  # After a task completes or a blocker is resolved
    RECURRING = "recurring"  # Template; only generated instances are selectable


class TimeOfDay(StrEnum):
    """Four fixed six-hour bands of the local day."""

    NIGHT = "night"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")

    location_id: str | None = Field(default=None, description="Where the task must be done")

    time_constraint_type: TimeConstraintType | None = Field(default=None, description="Active time rule")
    absolute_start_time: UtcDatetime | None = Field(default=None, description="Earliest start (absolute)")
    absolute_end_time: UtcDatetime | None = Field(default=None, description="Latest end (absolute)")
    relative_time_of_day: TimeOfDay | None = Field(default=None, description="Required band (relative_time_of_day)")
    after_task_id: str | None = Field(default=None, description="Task that must complete first (after_event)")
    after_blocker_id: str | None = Field(default=None, description="Blocker that must be resolved (after_event)")

    time_window_id: str | None = Field(default=None, description="Seasonal window that must be active")
    weather_condition_id: str | None = Field(default=None, description="Weather condition reference")
    requires_weather_condition: bool = Field(default=False, description="Whether the weather condition gates work")

    base_priority: int = Field(default=50, description="User-set priority 0-100")
    calculated_priority: int = Field(default=50, description="Deadline-adjusted projection of base priority")
    deadline: UtcDatetime | None = Field(default=None, description="Due timestamp")
    deadline_urgency_multiplier: float = Field(default=1.0, description="How strongly a near deadline boosts priority")

    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Lifecycle status")
    completed_at: UtcDatetime | None = Field(default=None, description="Completion timestamp")
    completed_by_id: str | None = Field(default=None, description="User who completed the task")

    estimated_duration_minutes: int | None = Field(default=None, description="Expected effort")
    category: str | None = Field(default=None, description="Category label used for batching hints")
    llm_generated_subtasks: bool = Field(default=False, description="Whether sub-tasks were generated for this task")
    parent_task_id: str | None = Field(default=None, description="Task this one was decomposed from")
    created_by_id: str | None = Field(default=None, description="Creator user ID")
