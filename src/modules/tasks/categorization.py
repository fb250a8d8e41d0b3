"""Advisory task categories and batching hints.

Categories never influence eligibility or priority. They only let a caller
suggest doing similar eligible tasks in one trip.
"""

import logging

from src.agents.base import TaskAdvisor
from src.agents.retry_handler import AgentRetryHandler, get_retry_handler
from src.core import db_client
from src.core.logging import span
from src.domain.category import TaskCategoryAssignment
from src.domain.context import SelectionContext
from src.interface.places_client import PlaceFinder
from src.models.service_models import BatchHint
from src.modules.tasks import repository
from src.modules.tasks.selector import rank_tasks
from src.modules.tasks.snapshot import load_snapshot


logger = logging.getLogger(__name__)


async def categorize_task(
    task_id: str,
    advisor: TaskAdvisor,
    *,
    retry_handler: AgentRetryHandler | None = None,
) -> TaskCategoryAssignment:
    """Label a task with a category chosen by the advisor.

    The category is created on first use and the task's ``category`` field is
    updated. Re-categorizing into the same category refreshes the confidence.

    Raises:
        NotFoundError: If the task does not exist
        CollaboratorError: If the advisor fails after its retries
    """
    operation = "categorize_task"
    with span("categorization.categorize_task"):
        task = await repository.get_task(task_id, operation=operation)
        handler = retry_handler or get_retry_handler()
        suggestion = await handler.execute_with_retry(advisor.categorize, task.title, task.description)

        async with db_client.transaction():
            category = await repository.find_category_by_name(suggestion.label)
            if category is None:
                category = await repository.create_category(
                    {"name": suggestion.label, "keywords": [], "batch_compatible": suggestion.batch_compatible}
                )

            existing = await repository.find_category_assignment(task_id, category.id)
            if existing is None:
                assignment = await repository.create_category_assignment(
                    {
                        "task_id": task_id,
                        "category_id": category.id,
                        "confidence_score": suggestion.confidence,
                        "assigned_by_llm": True,
                    }
                )
            else:
                assignment = await repository.update_category_assignment(
                    existing.id, {"confidence_score": suggestion.confidence, "assigned_by_llm": True}
                )
            await repository.update_task(task_id, {"category": category.name}, operation=operation)

        logger.info(
            "Categorized task",
            extra={"task_id": task_id, "category": category.name, "confidence": suggestion.confidence},
        )
        return assignment


async def batch_hint(
    task_id: str,
    context: SelectionContext,
    *,
    place_finder: PlaceFinder | None = None,
) -> BatchHint:
    """List other eligible tasks in the same category, best first.

    Raises:
        NotFoundError: If the task does not exist
    """
    with span("categorization.batch_hint"):
        task = await repository.get_task(task_id, operation="batch_hint")
        if not task.category:
            return BatchHint(task_id=task_id)

        category = await repository.find_category_by_name(task.category)
        batch_compatible = category.batch_compatible if category is not None else True
        if not batch_compatible:
            return BatchHint(task_id=task_id, category=task.category, batch_compatible=False)

        snapshot = await load_snapshot()
        ranked = await rank_tasks(context, snapshot, place_finder=place_finder)
        companions = [other for other in ranked if other.id != task_id and other.category == task.category]
        return BatchHint(task_id=task_id, category=task.category, batch_compatible=True, companion_tasks=companions)
