"""Typed access to task engine records on top of db_client.

Every read returns domain models; a missing id raises NotFoundError carrying
the entity id and the operation that needed it.
"""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel

from src.core import db_client
from src.core.db_client import sanitize_param
from src.core.errors import NotFoundError
from src.domain.assignment import TaskAssignment
from src.domain.blocker import Blocker
from src.domain.category import TaskCategory, TaskCategoryAssignment
from src.domain.conditions import TimeWindow, WeatherCondition
from src.domain.dependency import TaskDependency
from src.domain.history import TaskHistory
from src.domain.location import Location
from src.domain.schedule import RecurringSchedule
from src.domain.task import Task, TaskStatus


logger = logging.getLogger(__name__)

TASKS = "tasks"
LOCATIONS = "locations"
TIME_WINDOWS = "time_windows"
WEATHER_CONDITIONS = "weather_conditions"
DEPENDENCIES = "task_dependencies"
SCHEDULES = "recurring_schedules"
ASSIGNMENTS = "task_assignments"
BLOCKERS = "blockers"
HISTORY = "task_history"
CATEGORIES = "task_categories"
CATEGORY_ASSIGNMENTS = "task_category_assignments"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _eq(field: str, value: str) -> str:
    return f'{field} = "{sanitize_param(value)}"'


def _flag(field: str, value: bool) -> str:
    return f'{field} = "{str(value).lower()}"'


async def _get(collection: str, model: type[ModelT], record_id: str, *, operation: str) -> ModelT:
    try:
        record = await db_client.get_record(collection=collection, record_id=record_id)
    except KeyError as e:
        msg = f"{model.__name__} {record_id} not found"
        raise NotFoundError(msg, entity_id=record_id, operation=operation) from e
    return model.model_validate(record)


async def _list(collection: str, model: type[ModelT], filter_query: str = "") -> list[ModelT]:
    records = await db_client.list_all_records(collection=collection, filter_query=filter_query)
    return [model.model_validate(record) for record in records]


async def _create(collection: str, model: type[ModelT], data: dict[str, Any]) -> ModelT:
    record = await db_client.create_record(collection=collection, data=data)
    return model.model_validate(record)


async def _update(
    collection: str, model: type[ModelT], record_id: str, data: dict[str, Any], *, operation: str
) -> ModelT:
    try:
        record = await db_client.update_record(collection=collection, record_id=record_id, data=data)
    except KeyError as e:
        msg = f"{model.__name__} {record_id} not found"
        raise NotFoundError(msg, entity_id=record_id, operation=operation) from e
    return model.model_validate(record)


# Tasks


async def get_task(task_id: str, *, operation: str = "get_task") -> Task:
    return await _get(TASKS, Task, task_id, operation=operation)


async def list_tasks(filter_query: str = "") -> list[Task]:
    return await _list(TASKS, Task, filter_query)


async def list_tasks_with_status(status: TaskStatus) -> list[Task]:
    return await _list(TASKS, Task, _eq("status", status))


async def create_task(data: dict[str, Any]) -> Task:
    return await _create(TASKS, Task, data)


async def update_task(task_id: str, data: dict[str, Any], *, operation: str = "update_task") -> Task:
    return await _update(TASKS, Task, task_id, data, operation=operation)


# Locations, time windows, weather


async def get_location(location_id: str) -> Location:
    return await _get(LOCATIONS, Location, location_id, operation="get_location")


async def list_locations() -> list[Location]:
    return await _list(LOCATIONS, Location)


async def create_location(data: dict[str, Any]) -> Location:
    return await _create(LOCATIONS, Location, data)


async def get_time_window(window_id: str) -> TimeWindow:
    return await _get(TIME_WINDOWS, TimeWindow, window_id, operation="get_time_window")


async def list_time_windows() -> list[TimeWindow]:
    return await _list(TIME_WINDOWS, TimeWindow)


async def create_time_window(data: dict[str, Any]) -> TimeWindow:
    return await _create(TIME_WINDOWS, TimeWindow, data)


async def update_time_window(window_id: str, data: dict[str, Any]) -> TimeWindow:
    return await _update(TIME_WINDOWS, TimeWindow, window_id, data, operation="update_time_window")


async def get_weather_condition(condition_id: str) -> WeatherCondition:
    return await _get(WEATHER_CONDITIONS, WeatherCondition, condition_id, operation="get_weather_condition")


async def list_weather_conditions() -> list[WeatherCondition]:
    return await _list(WEATHER_CONDITIONS, WeatherCondition)


async def create_weather_condition(data: dict[str, Any]) -> WeatherCondition:
    return await _create(WEATHER_CONDITIONS, WeatherCondition, data)


# Dependency edges


async def list_edges() -> list[TaskDependency]:
    return await _list(DEPENDENCIES, TaskDependency)


async def list_edges_from(task_id: str) -> list[TaskDependency]:
    """Edges whose dependent is ``task_id`` (its prerequisites)."""
    return await _list(DEPENDENCIES, TaskDependency, _eq("task_id", task_id))


async def list_edges_to(task_id: str) -> list[TaskDependency]:
    """Edges whose prerequisite is ``task_id`` (its dependents)."""
    return await _list(DEPENDENCIES, TaskDependency, _eq("depends_on_task_id", task_id))


async def find_edge(task_id: str, depends_on_task_id: str) -> TaskDependency | None:
    record = await db_client.get_first_record(
        collection=DEPENDENCIES,
        filter_query=f"{_eq('task_id', task_id)} && {_eq('depends_on_task_id', depends_on_task_id)}",
    )
    return TaskDependency.model_validate(record) if record else None


async def create_edge(task_id: str, depends_on_task_id: str) -> TaskDependency:
    return await _create(DEPENDENCIES, TaskDependency, {"task_id": task_id, "depends_on_task_id": depends_on_task_id})


async def delete_edge(edge_id: str) -> None:
    await db_client.delete_record(collection=DEPENDENCIES, record_id=edge_id)


# Assignments


async def get_assignment(assignment_id: str, *, operation: str = "get_assignment") -> TaskAssignment:
    return await _get(ASSIGNMENTS, TaskAssignment, assignment_id, operation=operation)


async def get_active_assignment_for_user(user_id: str) -> TaskAssignment | None:
    record = await db_client.get_first_record(
        collection=ASSIGNMENTS,
        filter_query=f"{_eq('user_id', user_id)} && {_flag('is_active', True)}",
    )
    return TaskAssignment.model_validate(record) if record else None


async def get_active_assignment_for_task(task_id: str) -> TaskAssignment | None:
    record = await db_client.get_first_record(
        collection=ASSIGNMENTS,
        filter_query=f"{_eq('task_id', task_id)} && {_flag('is_active', True)}",
    )
    return TaskAssignment.model_validate(record) if record else None


async def create_assignment(data: dict[str, Any]) -> TaskAssignment:
    return await _create(ASSIGNMENTS, TaskAssignment, data)


async def update_assignment(assignment_id: str, data: dict[str, Any], *, operation: str) -> TaskAssignment:
    return await _update(ASSIGNMENTS, TaskAssignment, assignment_id, data, operation=operation)


# Blockers


async def get_blocker(blocker_id: str, *, operation: str = "get_blocker") -> Blocker:
    return await _get(BLOCKERS, Blocker, blocker_id, operation=operation)


async def list_blockers() -> list[Blocker]:
    return await _list(BLOCKERS, Blocker)


async def list_open_blockers(task_id: str) -> list[Blocker]:
    return await _list(BLOCKERS, Blocker, f"{_eq('task_id', task_id)} && {_flag('resolved', False)}")


async def create_blocker(data: dict[str, Any]) -> Blocker:
    return await _create(BLOCKERS, Blocker, data)


async def update_blocker(blocker_id: str, data: dict[str, Any], *, operation: str) -> Blocker:
    return await _update(BLOCKERS, Blocker, blocker_id, data, operation=operation)


# History (append-only: no update or delete helpers)


async def create_history(data: dict[str, Any]) -> TaskHistory:
    return await _create(HISTORY, TaskHistory, data)


async def list_history_for_task(task_id: str) -> list[TaskHistory]:
    return await _list(HISTORY, TaskHistory, _eq("task_id", task_id))


async def list_history_for_user(user_id: str) -> list[TaskHistory]:
    return await _list(HISTORY, TaskHistory, _eq("user_id", user_id))


# Recurring schedules


async def get_schedule(schedule_id: str) -> RecurringSchedule:
    return await _get(SCHEDULES, RecurringSchedule, schedule_id, operation="get_schedule")


async def list_active_schedules() -> list[RecurringSchedule]:
    return await _list(SCHEDULES, RecurringSchedule, _flag("is_active", True))


async def create_schedule(data: dict[str, Any]) -> RecurringSchedule:
    return await _create(SCHEDULES, RecurringSchedule, data)


async def update_schedule(schedule_id: str, data: dict[str, Any]) -> RecurringSchedule:
    return await _update(SCHEDULES, RecurringSchedule, schedule_id, data, operation="update_schedule")


# Categories


async def find_category_by_name(name: str) -> TaskCategory | None:
    record = await db_client.get_first_record(collection=CATEGORIES, filter_query=_eq("name", name))
    return TaskCategory.model_validate(record) if record else None


async def list_categories() -> list[TaskCategory]:
    return await _list(CATEGORIES, TaskCategory)


async def create_category(data: dict[str, Any]) -> TaskCategory:
    return await _create(CATEGORIES, TaskCategory, data)


async def find_category_assignment(task_id: str, category_id: str) -> TaskCategoryAssignment | None:
    record = await db_client.get_first_record(
        collection=CATEGORY_ASSIGNMENTS,
        filter_query=f"{_eq('task_id', task_id)} && {_eq('category_id', category_id)}",
    )
    return TaskCategoryAssignment.model_validate(record) if record else None


async def create_category_assignment(data: dict[str, Any]) -> TaskCategoryAssignment:
    return await _create(CATEGORY_ASSIGNMENTS, TaskCategoryAssignment, data)


async def update_category_assignment(assignment_id: str, data: dict[str, Any]) -> TaskCategoryAssignment:
    return await _update(
        CATEGORY_ASSIGNMENTS, TaskCategoryAssignment, assignment_id, data, operation="update_category_assignment"
    )
