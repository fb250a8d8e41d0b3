"""Task assignment domain model."""

from pydantic import BaseModel, Field

from src.domain.types import UtcDatetime


class TaskAssignment(BaseModel):
    """A user's commitment to one task. At most one is active per user."""

    id: str = Field(..., description="Unique assignment ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    user_id: str = Field(..., description="Assignee")
    task_id: str = Field(..., description="Assigned task")
    assigned_at: UtcDatetime = Field(..., description="When the assignment was made")
    started_at: UtcDatetime | None = Field(default=None, description="When work started")
    completed_at: UtcDatetime | None = Field(default=None, description="When the task was completed")
    assigned_latitude: float | None = Field(default=None, description="User latitude at assignment")
    assigned_longitude: float | None = Field(default=None, description="User longitude at assignment")
    is_active: bool = Field(default=True, description="Whether this is the user's current assignment")
