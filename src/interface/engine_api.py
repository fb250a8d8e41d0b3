"""Presentation-facing surface of the task engine.

A UI or voice layer talks to ``TaskEngine`` only. Engine failures propagate
as classified exceptions; ``describe_error`` turns any of them into a
user-facing ErrorResponse.
"""

import logging
from typing import Any

from src.agents.base import TaskAdvisor
from src.agents.task_advisor import LLMTaskAdvisor
from src.core.errors import ErrorResponse, classify_error_with_response
from src.domain.assignment import TaskAssignment
from src.domain.blocker import Blocker
from src.domain.category import TaskCategoryAssignment
from src.domain.context import SelectionContext
from src.domain.dependency import TaskDependency
from src.domain.location import Location
from src.domain.schedule import RecurringSchedule
from src.domain.task import Task
from src.interface.places_client import GooglePlacesFinder, PlaceFinder
from src.models.service_models import BatchHint, BlockerReport, CompletionResult, EligibilityResult, UserTaskStats
from src.modules.tasks import (
    analytics,
    assignments,
    blockers,
    categorization,
    dependencies,
    eligibility,
    recurrence,
    selector,
    service,
)
from src.modules.tasks.snapshot import load_snapshot


logger = logging.getLogger(__name__)


class TaskEngine:
    """Request-scoped operations of the task selection engine.

    Collaborators are injected so callers and tests can swap them; the
    defaults talk to OpenRouter and Google Places.
    """

    def __init__(self, *, advisor: TaskAdvisor | None = None, place_finder: PlaceFinder | None = None) -> None:
        self.advisor = advisor or LLMTaskAdvisor()
        self.place_finder = place_finder or GooglePlacesFinder()

    # Selection

    async def get_next_task(self, user_id: str, context: SelectionContext) -> Task | None:
        return await selector.next_task(user_id, context, place_finder=self.place_finder)

    async def explain_eligibility(self, task_id: str, context: SelectionContext) -> EligibilityResult:
        """Report which rule, if any, keeps a task from being selected."""
        snapshot = await load_snapshot()
        task = await service.get_task(task_id)
        return await eligibility.check_eligibility(task, context, snapshot, place_finder=self.place_finder)

    # Assignment lifecycle

    async def current_assignment(self, user_id: str) -> TaskAssignment | None:
        return await assignments.current_assignment(user_id)

    async def assign(self, user_id: str, task_id: str, context: SelectionContext) -> TaskAssignment:
        return await assignments.assign(user_id, task_id, context, place_finder=self.place_finder)

    async def start(self, assignment_id: str) -> TaskAssignment:
        return await assignments.start(assignment_id)

    async def complete(self, assignment_id: str) -> CompletionResult:
        return await assignments.complete(assignment_id)

    async def cancel(self, assignment_id: str) -> TaskAssignment:
        return await assignments.cancel(assignment_id)

    # Blockers

    async def report_blocker(self, task_id: str, user_id: str, description: str) -> BlockerReport:
        return await blockers.report_blocker(task_id, user_id, description, self.advisor)

    async def resolve_blocker(self, blocker_id: str, notes: str | None = None) -> Blocker:
        return await blockers.resolve_blocker(blocker_id, notes=notes)

    # Statistics

    async def get_stats(self, user_id: str) -> UserTaskStats:
        return await analytics.get_stats(user_id)

    # Task data

    async def create_task(self, data: dict[str, Any]) -> Task:
        return await service.create_task(data)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        return await service.update_task(task_id, changes)

    async def create_location(self, data: dict[str, Any]) -> Location:
        return await service.create_location(data)

    async def add_dependency(self, task_id: str, depends_on_task_id: str) -> TaskDependency:
        return await dependencies.add_dependency(task_id, depends_on_task_id)

    async def remove_dependency(self, task_id: str, depends_on_task_id: str) -> bool:
        return await dependencies.remove_dependency(task_id, depends_on_task_id)

    async def create_schedule(self, data: dict[str, Any]) -> RecurringSchedule:
        return await recurrence.create_schedule(data)

    # Categories

    async def categorize_task(self, task_id: str) -> TaskCategoryAssignment:
        return await categorization.categorize_task(task_id, self.advisor)

    async def batch_hint(self, task_id: str, context: SelectionContext) -> BatchHint:
        return await categorization.batch_hint(task_id, context, place_finder=self.place_finder)

    @staticmethod
    def describe_error(exception: Exception) -> ErrorResponse:
        """Classify an engine failure into a user-facing response."""
        response = classify_error_with_response(exception)
        logger.info(
            "Described engine error",
            extra={"code": response.code, "entity_id": response.entity_id, "operation": response.operation},
        )
        return response
