"""End-to-end walk through the TaskEngine facade with fake collaborators."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.agents.base import SubtaskSuggestion
from src.core.errors import ActiveAssignmentError, ErrorCode
from src.domain.context import GeoPoint, SelectionContext
from src.domain.location import LocationType
from src.domain.task import TaskStatus
from src.interface.engine_api import TaskEngine
from src.models.service_models import EligibilityRule


@pytest.fixture
def advisor() -> MagicMock:
    fake = MagicMock()
    fake.decompose = AsyncMock(return_value=[SubtaskSuggestion(title="Buy paint")])
    fake.categorize = AsyncMock()
    return fake


@pytest.fixture
def place_finder() -> MagicMock:
    finder = MagicMock()
    finder.find_nearby = AsyncMock(return_value=True)
    return finder


@pytest.fixture
def engine(patched_db, advisor, place_finder, fast_retry_handler, monkeypatch) -> TaskEngine:
    monkeypatch.setattr("src.modules.tasks.blockers.get_retry_handler", lambda: fast_retry_handler)
    return TaskEngine(advisor=advisor, place_finder=place_finder)


@pytest.mark.unit
class TestTaskEngine:
    async def test_fuzzy_location_uses_place_finder(self, engine, place_finder, context):
        shop = await engine.create_location(
            {"name": "Any pharmacy", "location_type": LocationType.FUZZY, "category": "pharmacy", "search_radius_km": 3}
        )
        task = await engine.create_task({"title": "Pick up prescription", "location_id": shop.id})

        chosen = await engine.get_next_task("user-1", context)

        assert chosen.id == task.id
        place_finder.find_nearby.assert_awaited_once()
        category, center, radius = place_finder.find_nearby.await_args.args
        assert (category, center, radius) == ("pharmacy", context.user_location, 3.0)

    async def test_explain_eligibility(self, engine, now):
        home = await engine.create_location(
            {"name": "Home", "location_type": LocationType.PHYSICAL, "latitude": 52.52, "longitude": 13.405}
        )
        task = await engine.create_task({"title": "Water plants", "location_id": home.id})
        away = SelectionContext(now=now, user_location=GeoPoint(latitude=48.1351, longitude=11.5820))

        result = await engine.explain_eligibility(task.id, away)

        assert result.eligible is False
        assert result.failed_rule == EligibilityRule.LOCATION

    async def test_full_lifecycle(self, engine, advisor, context, now):
        fence = await engine.create_task({"title": "Paint fence", "deadline": now + timedelta(days=2)})

        assignment = await engine.assign("user-1", fence.id, context)
        assert (await engine.current_assignment("user-1")).id == assignment.id
        with pytest.raises(ActiveAssignmentError) as exc_info:
            await engine.assign("user-1", fence.id, context)
        assert engine.describe_error(exc_info.value).code == ErrorCode.ERR_ACTIVE_ASSIGNMENT_EXISTS

        report = await engine.report_blocker(fence.id, "user-1", "no paint")
        assert [t.title for t in report.subtasks] == ["Buy paint"]
        assert (await engine.get_next_task("user-1", context)).id == report.subtasks[0].id

        buy = await engine.assign("user-1", report.subtasks[0].id, context)
        await engine.start(buy.id)
        result = await engine.complete(buy.id)
        assert result.unblocked_task_ids == [fence.id]

        again = await engine.assign("user-1", fence.id, context)
        done = await engine.complete(again.id)
        assert done.task.status == TaskStatus.COMPLETED
        assert await engine.current_assignment("user-1") is None
        assert assignment.id != again.id

        stats = await engine.get_stats("user-1")
        assert stats.completed_count == 2
        assert stats.blocked_count == 1
