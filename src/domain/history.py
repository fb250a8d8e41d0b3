"""Task history domain models for the append-only event log."""

from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.types import UtcDatetime


class HistoryEventType(StrEnum):
    """Kinds of history events."""

    STARTED = "started"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    GRATIFICATION = "gratification"


class TaskHistory(BaseModel):
    """History entry data transfer object. Never mutated after creation."""

    id: str = Field(..., description="Unique history ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    task_id: str = Field(..., description="Task the event relates to")
    user_id: str = Field(..., description="User who caused the event")
    event_type: HistoryEventType = Field(..., description="Event kind")
    blocker_id: str | None = Field(default=None, description="Blocker for blocked events")
    gratification_message: str | None = Field(default=None, description="Positive feedback shown to the user")
    notes: str | None = Field(default=None, description="Additional notes")
    occurred_at: UtcDatetime = Field(..., description="When the event happened")
