"""Tests for the eligibility filter.

Eligibility is a pure function of (task, context, snapshot), so these tests
build snapshots directly instead of going through the database.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from src.core.config import settings
from src.core.errors import CollaboratorFailure, CollaboratorTimeoutError
from src.domain.blocker import Blocker
from src.domain.conditions import TimeWindow, WeatherCondition, WeatherConditionType, WeatherReading
from src.domain.context import GeoPoint, SelectionContext
from src.domain.dependency import TaskDependency
from src.domain.location import Location, LocationType
from src.domain.task import Task, TaskStatus, TimeConstraintType, TimeOfDay
from src.models.service_models import EligibilityRule
from src.modules.tasks.eligibility import check_eligibility, is_eligible
from src.modules.tasks.snapshot import EngineSnapshot


NOW = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)  # Wednesday
STAMP = datetime(2026, 1, 1, tzinfo=UTC)
BERLIN = GeoPoint(latitude=52.5200, longitude=13.4050)


def make_task(task_id: str = "1", **fields) -> Task:
    return Task(id=task_id, created=STAMP, updated=STAMP, title=f"Task {task_id}", **fields)


def make_location(location_id: str, location_type: LocationType, **fields) -> Location:
    return Location(
        id=location_id, created=STAMP, updated=STAMP, name=f"Place {location_id}", location_type=location_type, **fields
    )


def make_condition(condition_id: str, condition_type: WeatherConditionType, threshold: float | None = None):
    return WeatherCondition(
        id=condition_id,
        created=STAMP,
        updated=STAMP,
        name=condition_type.value,
        condition_type=condition_type,
        threshold_value=threshold,
    )


def snapshot_of(*tasks: Task, **collections) -> EngineSnapshot:
    return EngineSnapshot(tasks={task.id: task for task in tasks}, **collections)


async def check(task: Task, snapshot: EngineSnapshot | None = None, context: SelectionContext | None = None, **kw):
    snapshot = snapshot or snapshot_of(task)
    context = context or SelectionContext(now=NOW, user_location=BERLIN)
    return await check_eligibility(task, context, snapshot, **kw)


@pytest.mark.unit
class TestStatusAndDependencies:
    async def test_plain_pending_task_is_eligible(self):
        result = await check(make_task())
        assert result.eligible is True
        assert result.failed_rule is None

    @pytest.mark.parametrize(
        "status", [TaskStatus.ASSIGNED, TaskStatus.BLOCKED, TaskStatus.COMPLETED, TaskStatus.CANCELLED]
    )
    async def test_non_pending_task_fails_status(self, status):
        result = await check(make_task(status=status))
        assert result.failed_rule == EligibilityRule.STATUS

    async def test_unmet_dependency_fails(self):
        task = make_task("1")
        prereq = make_task("2")
        edge = TaskDependency(id="e1", created=STAMP, updated=STAMP, task_id="1", depends_on_task_id="2")

        result = await check(task, snapshot_of(task, prereq, edges=[edge]))

        assert result.failed_rule == EligibilityRule.DEPENDENCIES

    async def test_completed_dependency_passes(self):
        task = make_task("1")
        prereq = make_task("2", status=TaskStatus.COMPLETED)
        edge = TaskDependency(id="e1", created=STAMP, updated=STAMP, task_id="1", depends_on_task_id="2")

        assert await is_eligible(task, SelectionContext(now=NOW), snapshot_of(task, prereq, edges=[edge]))

    async def test_status_is_reported_before_dependencies(self):
        task = make_task("1", status=TaskStatus.BLOCKED)
        edge = TaskDependency(id="e1", created=STAMP, updated=STAMP, task_id="1", depends_on_task_id="2")

        result = await check(task, snapshot_of(task, make_task("2"), edges=[edge]))

        assert result.failed_rule == EligibilityRule.STATUS


@pytest.mark.unit
class TestTimeWindow:
    def _window(self, active: bool) -> TimeWindow:
        return TimeWindow(id="w1", created=STAMP, updated=STAMP, name="snow_season", is_active=active)

    async def test_active_window_passes(self):
        task = make_task(time_window_id="w1")
        result = await check(task, snapshot_of(task, time_windows={"w1": self._window(True)}))
        assert result.eligible is True

    async def test_inactive_window_fails(self):
        task = make_task(time_window_id="w1")
        result = await check(task, snapshot_of(task, time_windows={"w1": self._window(False)}))
        assert result.failed_rule == EligibilityRule.TIME_WINDOW

    async def test_missing_window_fails(self):
        result = await check(make_task(time_window_id="missing"))
        assert result.failed_rule == EligibilityRule.TIME_WINDOW

    async def test_window_is_reported_before_weather(self):
        task = make_task(time_window_id="w1", weather_condition_id="c1", requires_weather_condition=True)
        snapshot = snapshot_of(
            task,
            time_windows={"w1": self._window(False)},
            weather_conditions={"c1": make_condition("c1", WeatherConditionType.SNOW)},
        )

        result = await check(task, snapshot)

        assert result.failed_rule == EligibilityRule.TIME_WINDOW


@pytest.mark.unit
class TestTimeConstraint:
    async def test_absolute_window(self):
        inside = make_task(
            time_constraint_type=TimeConstraintType.ABSOLUTE,
            absolute_start_time=NOW - timedelta(hours=1),
            absolute_end_time=NOW + timedelta(hours=1),
        )
        not_open = make_task(time_constraint_type=TimeConstraintType.ABSOLUTE, absolute_start_time=NOW + timedelta(1))
        closed = make_task(time_constraint_type=TimeConstraintType.ABSOLUTE, absolute_end_time=NOW - timedelta(1))

        assert (await check(inside)).eligible is True
        assert (await check(not_open)).failed_rule == EligibilityRule.TIME_CONSTRAINT
        assert (await check(closed)).failed_rule == EligibilityRule.TIME_CONSTRAINT

    async def test_time_of_day_band_uses_local_zone(self):
        afternoon = make_task(
            time_constraint_type=TimeConstraintType.RELATIVE_TIME_OF_DAY, relative_time_of_day=TimeOfDay.AFTERNOON
        )
        morning = make_task(
            time_constraint_type=TimeConstraintType.RELATIVE_TIME_OF_DAY, relative_time_of_day=TimeOfDay.MORNING
        )

        assert (await check(afternoon)).eligible is True
        assert (await check(morning)).failed_rule == EligibilityRule.TIME_CONSTRAINT
        # 15:00 UTC is 07:00 in Los Angeles
        assert (await check(morning, tz=ZoneInfo("America/Los_Angeles"))).eligible is True

    async def test_business_hours(self):
        task = make_task(time_constraint_type=TimeConstraintType.BUSINESS_HOURS)
        saturday = SelectionContext(now=NOW + timedelta(days=3))
        evening = SelectionContext(now=NOW + timedelta(hours=3))

        assert (await check(task)).eligible is True
        assert (await check(task, context=saturday)).failed_rule == EligibilityRule.TIME_CONSTRAINT
        assert (await check(task, context=evening)).failed_rule == EligibilityRule.TIME_CONSTRAINT

    async def test_solar_uses_task_location_then_user_location(self):
        home = make_location("l1", LocationType.PHYSICAL, latitude=BERLIN.latitude, longitude=BERLIN.longitude)
        task = make_task(time_constraint_type=TimeConstraintType.RELATIVE_SOLAR)
        at_home = make_task("2", time_constraint_type=TimeConstraintType.RELATIVE_SOLAR, location_id="l1")
        night = SelectionContext(now=NOW + timedelta(hours=7), user_location=BERLIN)

        assert (await check(task)).eligible is True
        assert (await check(task, context=night)).failed_rule == EligibilityRule.TIME_CONSTRAINT
        no_coordinates = SelectionContext(now=NOW)
        assert (await check(task, context=no_coordinates)).failed_rule == EligibilityRule.TIME_CONSTRAINT
        result = await check(at_home, snapshot_of(at_home, locations={"l1": home}), context=no_coordinates)
        assert result.eligible is True

    async def test_solar_polar_night_and_midnight_sun(self):
        task = make_task(time_constraint_type=TimeConstraintType.RELATIVE_SOLAR)
        svalbard = GeoPoint(latitude=78.22, longitude=15.65)
        winter = SelectionContext(now=datetime(2026, 12, 21, 12, 0, tzinfo=UTC), user_location=svalbard)
        summer = SelectionContext(now=datetime(2026, 6, 21, 23, 30, tzinfo=UTC), user_location=svalbard)

        assert (await check(task, context=winter)).failed_rule == EligibilityRule.TIME_CONSTRAINT
        assert (await check(task, context=summer)).eligible is True

    async def test_after_event_waits_for_task_and_blocker(self):
        prereq = make_task("2")
        done = make_task("3", status=TaskStatus.COMPLETED)
        open_blocker = Blocker(id="b1", created=STAMP, updated=STAMP, task_id="3", description="no ladder")
        closed_blocker = open_blocker.model_copy(update={"id": "b2", "resolved": True})

        waiting = make_task(time_constraint_type=TimeConstraintType.AFTER_EVENT, after_task_id="2")
        ready = make_task(time_constraint_type=TimeConstraintType.AFTER_EVENT, after_task_id="3")
        blocked_on = make_task(time_constraint_type=TimeConstraintType.AFTER_EVENT, after_blocker_id="b1")
        cleared = make_task(time_constraint_type=TimeConstraintType.AFTER_EVENT, after_blocker_id="b2")
        blockers = {"b1": open_blocker, "b2": closed_blocker}

        assert (await check(waiting, snapshot_of(waiting, prereq))).failed_rule == EligibilityRule.TIME_CONSTRAINT
        assert (await check(ready, snapshot_of(ready, done))).eligible is True
        result = await check(blocked_on, snapshot_of(blocked_on, blockers=blockers))
        assert result.failed_rule == EligibilityRule.TIME_CONSTRAINT
        assert (await check(cleared, snapshot_of(cleared, blockers=blockers))).eligible is True

    async def test_recurring_template_is_never_eligible(self):
        result = await check(make_task(time_constraint_type=TimeConstraintType.RECURRING))
        assert result.failed_rule == EligibilityRule.TIME_CONSTRAINT


@pytest.mark.unit
class TestWeather:
    async def _check(self, condition: WeatherCondition, reading: WeatherReading | None, required: bool = True):
        task = make_task(weather_condition_id=condition.id, requires_weather_condition=required)
        context = SelectionContext(now=NOW, weather=reading)
        return await check(task, snapshot_of(task, weather_conditions={condition.id: condition}), context=context)

    async def test_snow_needs_snowfall(self):
        snow = make_condition("c1", WeatherConditionType.SNOW)
        assert (await self._check(snow, WeatherReading(snow_mm=4.0))).eligible is True
        assert (await self._check(snow, WeatherReading(snow_mm=0.0))).failed_rule == EligibilityRule.WEATHER

    async def test_rain_threshold_is_exclusive(self):
        rain = make_condition("c1", WeatherConditionType.RAIN, threshold=2.0)
        assert (await self._check(rain, WeatherReading(rain_mm=2.0))).failed_rule == EligibilityRule.WEATHER
        assert (await self._check(rain, WeatherReading(rain_mm=2.5))).eligible is True

    async def test_temperature_thresholds_are_inclusive(self):
        warm = make_condition("c1", WeatherConditionType.TEMPERATURE_ABOVE, threshold=10.0)
        cold = make_condition("c2", WeatherConditionType.TEMPERATURE_BELOW, threshold=0.0)

        assert (await self._check(warm, WeatherReading(temperature_c=10.0))).eligible is True
        assert (await self._check(warm, WeatherReading(temperature_c=9.9))).failed_rule == EligibilityRule.WEATHER
        assert (await self._check(cold, WeatherReading(temperature_c=0.0))).eligible is True
        assert (await self._check(cold, WeatherReading())).failed_rule == EligibilityRule.WEATHER

    async def test_missing_reading_fails_unless_any(self):
        snow = make_condition("c1", WeatherConditionType.SNOW)
        anything = make_condition("c2", WeatherConditionType.ANY)

        assert (await self._check(snow, None)).failed_rule == EligibilityRule.WEATHER
        assert (await self._check(anything, None)).eligible is True

    async def test_condition_is_ignored_when_not_required(self):
        snow = make_condition("c1", WeatherConditionType.SNOW)
        assert (await self._check(snow, None, required=False)).eligible is True


@pytest.mark.unit
class TestLocation:
    async def test_online_location_always_passes(self):
        online = make_location("l1", LocationType.ONLINE)
        task = make_task(location_id="l1")
        result = await check(task, snapshot_of(task, locations={"l1": online}), context=SelectionContext(now=NOW))
        assert result.eligible is True

    async def test_physical_location_uses_proximity_radius(self):
        # Roughly 300 m and 3 km north of the user
        near = make_location("l1", LocationType.PHYSICAL, latitude=52.5227, longitude=13.4050)
        far = make_location("l2", LocationType.PHYSICAL, latitude=52.5470, longitude=13.4050)
        near_task = make_task("1", location_id="l1")
        far_task = make_task("2", location_id="l2")
        snapshot = snapshot_of(near_task, far_task, locations={"l1": near, "l2": far})

        assert (await check(near_task, snapshot)).eligible is True
        assert (await check(far_task, snapshot)).failed_rule == EligibilityRule.LOCATION

    async def test_unknown_user_location_fails(self):
        home = make_location("l1", LocationType.PHYSICAL, latitude=52.52, longitude=13.40)
        task = make_task(location_id="l1")
        result = await check(task, snapshot_of(task, locations={"l1": home}), context=SelectionContext(now=NOW))
        assert result.failed_rule == EligibilityRule.LOCATION

    async def test_fuzzy_location_asks_place_finder(self):
        store = make_location("l1", LocationType.FUZZY, category="hardware_store", search_radius_km=5.0)
        task = make_task(location_id="l1")
        snapshot = snapshot_of(task, locations={"l1": store})
        finder = AsyncMock()
        finder.find_nearby = AsyncMock(return_value=True)

        result = await check(task, snapshot, place_finder=finder)

        assert result.eligible is True
        finder.find_nearby.assert_awaited_once_with("hardware_store", BERLIN, 5.0)

        finder.find_nearby = AsyncMock(return_value=False)
        assert (await check(task, snapshot, place_finder=finder)).failed_rule == EligibilityRule.LOCATION

    @pytest.mark.parametrize(
        "error", [CollaboratorTimeoutError("slow"), CollaboratorFailure("down"), TimeoutError()]
    )
    async def test_fuzzy_lookup_failure_makes_task_ineligible(self, error):
        store = make_location("l1", LocationType.FUZZY, category="pharmacy", search_radius_km=2.0)
        task = make_task(location_id="l1")
        finder = AsyncMock()
        finder.find_nearby = AsyncMock(side_effect=error)

        result = await check(task, snapshot_of(task, locations={"l1": store}), place_finder=finder)

        assert result.failed_rule == EligibilityRule.LOCATION

    async def test_slow_place_finder_is_cut_off(self, monkeypatch):
        monkeypatch.setattr(settings, "collaborator_timeout_seconds", 0.01)
        store = make_location("l1", LocationType.FUZZY, category="pharmacy", search_radius_km=2.0)
        task = make_task(location_id="l1")

        class SlowFinder:
            async def find_nearby(self, category, center, radius_km):
                await asyncio.sleep(1)
                return True

        result = await check(task, snapshot_of(task, locations={"l1": store}), place_finder=SlowFinder())

        assert result.failed_rule == EligibilityRule.LOCATION

    async def test_fuzzy_location_without_finder_fails(self):
        store = make_location("l1", LocationType.FUZZY, category="pharmacy", search_radius_km=2.0)
        task = make_task(location_id="l1")
        result = await check(task, snapshot_of(task, locations={"l1": store}))
        assert result.failed_rule == EligibilityRule.LOCATION
