"""Task category models (advisory, used for batching hints only)."""

from pydantic import BaseModel, Field, field_validator

from src.domain.types import UtcDatetime, decode_json_list


class TaskCategory(BaseModel):
    """Classification label shared by similar tasks."""

    id: str = Field(..., description="Unique category ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    name: str = Field(..., description="Unique category label")
    description: str | None = Field(default=None, description="What belongs in the category")
    keywords: list[str] = Field(default_factory=list, description="Keywords for matching")
    batch_compatible: bool = Field(default=True, description="Whether tasks in it can be done in one trip")

    @field_validator("keywords", mode="before")
    @classmethod
    def decode_keywords(cls, v: object) -> object:
        """Decode keywords stored as a JSON string."""
        return decode_json_list(v)


class TaskCategoryAssignment(BaseModel):
    """Link between a task and a category with a confidence score."""

    id: str = Field(..., description="Unique assignment ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    task_id: str = Field(..., description="Categorized task")
    category_id: str = Field(..., description="Category")
    confidence_score: float = Field(..., description="Classifier confidence 0-1")
    assigned_by_llm: bool = Field(default=False, description="Whether an LLM chose the category")
