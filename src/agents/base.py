"""Base types and the collaborator protocol for natural-language agents."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field


@dataclass
class Deps:
    """Dependencies injected into agent RunContext."""

    current_time: datetime
    task_title: str = ""
    task_description: str = ""
    location_names: list[str] = field(default_factory=list)


class SubtaskSuggestion(BaseModel):
    """One step proposed to get past a blocker."""

    title: str = Field(..., min_length=1, description="Short imperative title")
    description: str = Field(default="", description="What to do")
    estimated_duration_minutes: int | None = Field(default=None, gt=0, description="Expected effort")
    location_name: str | None = Field(default=None, description="Name of a known location, if any")
    deadline: datetime | None = Field(default=None, description="Suggested due time")


class DecompositionPlan(BaseModel):
    """Ordered sub-tasks returned by the decomposition agent."""

    subtasks: list[SubtaskSuggestion] = Field(default_factory=list)


class CategorySuggestion(BaseModel):
    """Category label for a task."""

    label: str = Field(..., min_length=1, description="Lower-case category name, e.g. 'groceries'")
    confidence: float = Field(..., ge=0.0, le=1.0, description="How sure the model is")
    batch_compatible: bool = Field(default=True, description="Whether tasks of this kind batch well")


class TaskAdvisor(Protocol):
    """Natural-language collaborator used by the blocker decomposer and categorization."""

    async def decompose(self, description: str, task_context: Deps) -> list[SubtaskSuggestion]: ...

    async def categorize(self, title: str, description: str) -> CategorySuggestion: ...
