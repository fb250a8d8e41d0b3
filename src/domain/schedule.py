"""Recurring schedule domain models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.task import TimeOfDay
from src.domain.types import UtcDatetime


class RecurrenceType(StrEnum):
    """How often a template task repeats."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"  # CRON expression or "every N days"


class RecurringSchedule(BaseModel):
    """Schedule that generates new task instances from a template task."""

    id: str = Field(..., description="Unique schedule ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    task_id: str = Field(..., description="Template task")
    recurrence_type: RecurrenceType = Field(..., description="Recurrence kind")
    time_of_day: TimeOfDay | None = Field(default=None, description="Band the instances are constrained to")
    day_of_week: int | None = Field(default=None, description="0=Sunday .. 6=Saturday (weekly)")
    day_of_month: int | None = Field(default=None, description="1..31 (monthly)")
    cron_expression: str | None = Field(default=None, description="Resolved CRON or INTERVAL expression")
    time_window_id: str | None = Field(default=None, description="Only generate while this window is active")
    next_occurrence: UtcDatetime = Field(..., description="When the next instance is due")
    last_generated_at: UtcDatetime | None = Field(default=None, description="Last time an instance was created")
    is_active: bool = Field(default=True, description="Whether the schedule still generates")
