"""Tests for task categorization and batching hints."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.agents.base import CategorySuggestion
from src.core.errors import CollaboratorFailure, NotFoundError
from src.domain.task import TaskStatus
from src.modules.tasks import repository
from src.modules.tasks.categorization import batch_hint, categorize_task


def _advisor(*suggestions: CategorySuggestion) -> MagicMock:
    advisor = MagicMock()
    advisor.categorize = AsyncMock(side_effect=list(suggestions))
    return advisor


@pytest.mark.unit
class TestCategorizeTask:
    async def test_creates_category_on_first_use(self, task_factory, fast_retry_handler):
        task = await task_factory(title="Buy milk", description="semi-skimmed")
        advisor = _advisor(CategorySuggestion(label="groceries", confidence=0.9))

        assignment = await categorize_task(task.id, advisor, retry_handler=fast_retry_handler)

        assert assignment.task_id == task.id
        assert assignment.confidence_score == 0.9
        assert assignment.assigned_by_llm is True
        advisor.categorize.assert_awaited_once_with("Buy milk", "semi-skimmed")
        assert (await repository.get_task(task.id)).category == "groceries"
        assert [c.name for c in await repository.list_categories()] == ["groceries"]

    async def test_recategorizing_reuses_category_and_assignment(self, task_factory, fast_retry_handler):
        task = await task_factory(title="Buy milk")
        advisor = _advisor(
            CategorySuggestion(label="groceries", confidence=0.6),
            CategorySuggestion(label="groceries", confidence=0.95),
        )

        first = await categorize_task(task.id, advisor, retry_handler=fast_retry_handler)
        second = await categorize_task(task.id, advisor, retry_handler=fast_retry_handler)

        assert first.id == second.id
        assert second.confidence_score == 0.95
        assert len(await repository.list_categories()) == 1

    async def test_advisor_failure_leaves_task_untouched(self, task_factory, fast_retry_handler):
        task = await task_factory(title="Buy milk")
        advisor = MagicMock()
        advisor.categorize = AsyncMock(side_effect=CollaboratorFailure("model unavailable"))

        with pytest.raises(CollaboratorFailure):
            await categorize_task(task.id, advisor, retry_handler=fast_retry_handler)

        assert (await repository.get_task(task.id)).category is None
        assert await repository.list_categories() == []

    async def test_missing_task(self, patched_db, fast_retry_handler):
        with pytest.raises(NotFoundError):
            await categorize_task("nope", _advisor(), retry_handler=fast_retry_handler)


@pytest.mark.unit
class TestBatchHint:
    async def test_lists_eligible_tasks_of_same_category(self, task_factory, context):
        milk = await task_factory(title="Buy milk", category="groceries")
        bread = await task_factory(title="Buy bread", category="groceries", base_priority=80)
        eggs = await task_factory(title="Buy eggs", category="groceries", base_priority=20)
        await task_factory(title="Mow lawn", category="garden")
        done = await task_factory(title="Buy jam", category="groceries")
        await repository.update_task(done.id, {"status": TaskStatus.COMPLETED})

        hint = await batch_hint(milk.id, context)

        assert hint.category == "groceries"
        assert hint.batch_compatible is True
        assert [t.id for t in hint.companion_tasks] == [bread.id, eggs.id]

    async def test_uncategorized_task_has_no_companions(self, task_factory, context):
        task = await task_factory()
        await task_factory(category="groceries")

        hint = await batch_hint(task.id, context)

        assert hint.category is None
        assert hint.companion_tasks == []

    async def test_incompatible_category_disables_batching(self, task_factory, context):
        await repository.create_category({"name": "errands", "keywords": [], "batch_compatible": False})
        task = await task_factory(category="errands")
        await task_factory(category="errands")

        hint = await batch_hint(task.id, context)

        assert hint.batch_compatible is False
        assert hint.companion_tasks == []
