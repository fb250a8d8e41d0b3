"""Eligibility filter: is a task actionable for this context right now?

Rules run cheapest and most decisive first and stop at the first failure:
status, dependencies, time window, time constraint, weather, location.
"""

import asyncio
import logging
from zoneinfo import ZoneInfo

from src.core.config import settings
from src.core.errors import CollaboratorError
from src.core.geo import haversine_meters
from src.core.solar import solar_window
from src.core.time_rules import is_business_hours, local_zone, time_of_day_band, to_local
from src.domain.conditions import WeatherConditionType
from src.domain.context import GeoPoint, SelectionContext
from src.domain.location import LocationType
from src.domain.task import Task, TaskStatus, TimeConstraintType
from src.interface.places_client import PlaceFinder
from src.models.service_models import EligibilityResult, EligibilityRule
from src.modules.tasks.dependencies import prerequisites_satisfied
from src.modules.tasks.snapshot import EngineSnapshot


logger = logging.getLogger(__name__)


def _check_time_window(task: Task, snapshot: EngineSnapshot) -> EligibilityResult:
    if task.time_window_id is None:
        return EligibilityResult.ok()
    window = snapshot.time_windows.get(task.time_window_id)
    if window is None:
        return EligibilityResult.fail(EligibilityRule.TIME_WINDOW, f"time window {task.time_window_id} not found")
    if not window.is_active:
        return EligibilityResult.fail(EligibilityRule.TIME_WINDOW, f"time window '{window.name}' is not active")
    return EligibilityResult.ok()


def _solar_coordinates(task: Task, context: SelectionContext, snapshot: EngineSnapshot) -> GeoPoint | None:
    if task.location_id is not None:
        location = snapshot.locations.get(task.location_id)
        if location is not None and location.latitude is not None and location.longitude is not None:
            return GeoPoint(latitude=location.latitude, longitude=location.longitude)
    return context.user_location


def _check_time_constraint(
    task: Task, context: SelectionContext, snapshot: EngineSnapshot, tz: ZoneInfo
) -> EligibilityResult:
    rule = EligibilityRule.TIME_CONSTRAINT
    now = context.now
    local_now = to_local(now, tz)

    match task.time_constraint_type:
        case None:
            return EligibilityResult.ok()

        case TimeConstraintType.ABSOLUTE:
            if task.absolute_start_time is not None and now < task.absolute_start_time:
                return EligibilityResult.fail(rule, "absolute window has not opened yet")
            if task.absolute_end_time is not None and now > task.absolute_end_time:
                return EligibilityResult.fail(rule, "absolute window has closed")
            return EligibilityResult.ok()

        case TimeConstraintType.RELATIVE_TIME_OF_DAY:
            band = time_of_day_band(local_now)
            if band != task.relative_time_of_day:
                return EligibilityResult.fail(rule, f"it is {band.value}, task needs {task.relative_time_of_day}")
            return EligibilityResult.ok()

        case TimeConstraintType.RELATIVE_SOLAR:
            point = _solar_coordinates(task, context, snapshot)
            if point is None:
                return EligibilityResult.fail(rule, "no coordinates to compute dawn and dusk")
            window = solar_window(day=local_now.date(), latitude=point.latitude, longitude=point.longitude, tz=tz)
            if window is None:
                return EligibilityResult.fail(rule, "the sun does not rise today at this location")
            if not window.contains(local_now):
                return EligibilityResult.fail(rule, "outside daylight hours")
            return EligibilityResult.ok()

        case TimeConstraintType.BUSINESS_HOURS:
            if not is_business_hours(local_now):
                return EligibilityResult.fail(rule, "outside business hours")
            return EligibilityResult.ok()

        case TimeConstraintType.AFTER_EVENT:
            if task.after_task_id is not None and not snapshot.is_completed(task.after_task_id):
                return EligibilityResult.fail(rule, f"waiting for task {task.after_task_id} to complete")
            if task.after_blocker_id is not None:
                blocker = snapshot.blockers.get(task.after_blocker_id)
                if blocker is None or not blocker.resolved:
                    return EligibilityResult.fail(rule, f"waiting for blocker {task.after_blocker_id} to be resolved")
            return EligibilityResult.ok()

        case TimeConstraintType.RECURRING:
            return EligibilityResult.fail(rule, "recurring templates are only selectable through generated instances")

    return EligibilityResult.fail(rule, f"unknown time constraint {task.time_constraint_type}")


def _check_weather(task: Task, context: SelectionContext, snapshot: EngineSnapshot) -> EligibilityResult:
    rule = EligibilityRule.WEATHER
    if not task.requires_weather_condition or task.weather_condition_id is None:
        return EligibilityResult.ok()

    condition = snapshot.weather_conditions.get(task.weather_condition_id)
    if condition is None:
        return EligibilityResult.fail(rule, f"weather condition {task.weather_condition_id} not found")
    if condition.condition_type == WeatherConditionType.ANY:
        return EligibilityResult.ok()

    reading = context.weather
    if reading is None:
        return EligibilityResult.fail(rule, "no weather reading available")

    threshold = condition.threshold_value
    temperature = reading.temperature_c
    match condition.condition_type:
        case WeatherConditionType.SNOW:
            satisfied = reading.snow_mm > (threshold or 0.0)
        case WeatherConditionType.RAIN:
            satisfied = reading.rain_mm > (threshold or 0.0)
        case WeatherConditionType.TEMPERATURE_ABOVE:
            satisfied = temperature is not None and threshold is not None and temperature >= threshold
        case WeatherConditionType.TEMPERATURE_BELOW:
            satisfied = temperature is not None and threshold is not None and temperature <= threshold
        case _:
            satisfied = False

    if not satisfied:
        return EligibilityResult.fail(rule, f"weather does not match '{condition.name}'")
    return EligibilityResult.ok()


async def _check_location(
    task: Task,
    context: SelectionContext,
    snapshot: EngineSnapshot,
    place_finder: PlaceFinder | None,
) -> EligibilityResult:
    rule = EligibilityRule.LOCATION
    if task.location_id is None:
        return EligibilityResult.ok()

    location = snapshot.locations.get(task.location_id)
    if location is None:
        return EligibilityResult.fail(rule, f"location {task.location_id} not found")
    if location.location_type == LocationType.ONLINE:
        return EligibilityResult.ok()

    user = context.user_location
    if user is None:
        return EligibilityResult.fail(rule, "user location unknown")

    if location.location_type == LocationType.PHYSICAL:
        distance = haversine_meters(user.latitude, user.longitude, location.latitude, location.longitude)
        if distance > settings.proximity_radius_meters:
            return EligibilityResult.fail(rule, f"{distance:.0f} m away from '{location.name}'")
        return EligibilityResult.ok()

    if place_finder is None:
        return EligibilityResult.fail(rule, "no geolocation search available for fuzzy locations")

    try:
        found = await asyncio.wait_for(
            place_finder.find_nearby(location.category, user, location.search_radius_km),
            timeout=settings.collaborator_timeout_seconds,
        )
    except (TimeoutError, CollaboratorError) as e:
        logger.warning(
            "Fuzzy location lookup failed",
            extra={"task_id": task.id, "category": location.category, "error": str(e) or type(e).__name__},
        )
        return EligibilityResult.fail(rule, f"could not search for {location.category}: {type(e).__name__}")

    if not found:
        return EligibilityResult.fail(rule, f"no {location.category} within {location.search_radius_km} km")
    return EligibilityResult.ok()


async def check_eligibility(
    task: Task,
    context: SelectionContext,
    snapshot: EngineSnapshot,
    *,
    place_finder: PlaceFinder | None = None,
    tz: ZoneInfo | None = None,
) -> EligibilityResult:
    """Evaluate every rule in order and report the first failure."""
    tz = tz or local_zone()

    if task.status != TaskStatus.PENDING:
        return EligibilityResult.fail(EligibilityRule.STATUS, f"task is {task.status.value}")
    if not prerequisites_satisfied(task.id, snapshot):
        return EligibilityResult.fail(EligibilityRule.DEPENDENCIES, "prerequisites are not all completed")

    checks = (
        lambda: _check_time_window(task, snapshot),
        lambda: _check_time_constraint(task, context, snapshot, tz),
        lambda: _check_weather(task, context, snapshot),
    )
    for check in checks:
        result = check()
        if not result.eligible:
            return result

    return await _check_location(task, context, snapshot, place_finder)


async def is_eligible(
    task: Task,
    context: SelectionContext,
    snapshot: EngineSnapshot,
    *,
    place_finder: PlaceFinder | None = None,
    tz: ZoneInfo | None = None,
) -> bool:
    """Boolean form of check_eligibility."""
    result = await check_eligibility(task, context, snapshot, place_finder=place_finder, tz=tz)
    return result.eligible
