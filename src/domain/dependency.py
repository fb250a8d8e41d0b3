"""Task dependency edge model."""

from pydantic import BaseModel, Field

from src.domain.types import UtcDatetime


class TaskDependency(BaseModel):
    """Directed edge: ``task_id`` cannot start until ``depends_on_task_id`` is completed."""

    id: str = Field(..., description="Unique edge ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    task_id: str = Field(..., description="Dependent task")
    depends_on_task_id: str = Field(..., description="Prerequisite task")
