"""Blocker domain model."""

from pydantic import BaseModel, Field

from src.domain.types import UtcDatetime


class Blocker(BaseModel):
    """A user-reported obstacle. Blockers are a log and are never deduplicated."""

    id: str = Field(..., description="Unique blocker ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    task_id: str = Field(..., description="Blocked task")
    description: str = Field(..., description="What is in the way")
    resolved: bool = Field(default=False, description="Whether the obstacle has been cleared")
    resolved_at: UtcDatetime | None = Field(default=None, description="When it was cleared")
    resolution_notes: str | None = Field(default=None, description="How it was cleared")
    created_by_id: str | None = Field(default=None, description="Reporting user")
