"""Task service for CRUD operations on tasks, locations, time windows and weather conditions."""

import logging
from datetime import UTC, datetime
from typing import Any

from src.core import db_client
from src.core.errors import ValidationError
from src.core.locks import task_locks
from src.core.logging import span
from src.domain.conditions import TimeWindow, WeatherCondition
from src.domain.create_models import LocationCreate, TaskCreate, TimeWindowCreate, WeatherConditionCreate
from src.domain.history import HistoryEventType
from src.domain.location import Location
from src.domain.task import Task, TaskStatus
from src.domain.types import build_model
from src.modules.tasks import repository
from src.modules.tasks.history import record_event
from src.modules.tasks.priority import calculate_priority
from src.modules.tasks.state_machine import transition_task


logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset(TaskCreate.model_fields) - {"parent_task_id", "created_by_id"}


def prepare_task_record(task: TaskCreate, *, now: datetime) -> dict[str, Any]:
    """Serialize a validated task for storage with a fresh calculated priority."""
    record = task.model_dump(mode="json")
    record["calculated_priority"] = calculate_priority(
        base=task.base_priority,
        deadline=task.deadline,
        multiplier=task.deadline_urgency_multiplier,
        now=now,
    )
    return record


async def _check_references(task: TaskCreate, *, operation: str) -> None:
    """Every referenced id must exist."""
    if task.location_id is not None:
        await repository.get_location(task.location_id)
    if task.time_window_id is not None:
        await repository.get_time_window(task.time_window_id)
    if task.weather_condition_id is not None:
        await repository.get_weather_condition(task.weather_condition_id)
    if task.after_task_id is not None:
        await repository.get_task(task.after_task_id, operation=operation)
    if task.after_blocker_id is not None:
        await repository.get_blocker(task.after_blocker_id, operation=operation)
    if task.parent_task_id is not None:
        await repository.get_task(task.parent_task_id, operation=operation)


async def create_task(data: dict[str, Any], *, now: datetime | None = None) -> Task:
    """Create a pending task.

    Args:
        data: TaskCreate fields
        now: Clock used for the initial priority projection

    Returns:
        Created task

    Raises:
        ValidationError: If the fields break a task invariant
        NotFoundError: If a referenced location, window, condition, task or blocker is missing
    """
    with span("task_service.create_task"):
        payload = build_model(TaskCreate, data, operation="create_task")
        await _check_references(payload, operation="create_task")

        record = prepare_task_record(payload, now=now or datetime.now(UTC))
        record["status"] = TaskStatus.PENDING
        task = await repository.create_task(record)

        logger.info("Created task", extra={"task_id": task.id, "title": task.title})
        return task


async def update_task(task_id: str, changes: dict[str, Any], *, now: datetime | None = None) -> Task:
    """Edit a task's descriptive, constraint or priority fields.

    The merged result is validated as a whole and the calculated priority is
    recomputed. Status changes go through the lifecycle operations instead.

    Raises:
        ValidationError: If a field is not editable or the result breaks an invariant
        NotFoundError: If the task or a referenced id is missing
    """
    operation = "update_task"
    unknown = sorted(set(changes) - _EDITABLE_FIELDS)
    if unknown:
        msg = f"Fields cannot be edited: {', '.join(unknown)}"
        raise ValidationError(msg, entity_id=task_id, operation=operation)

    with span("task_service.update_task"):
        async with task_locks.hold(task_id), db_client.transaction():
            current = await repository.get_task(task_id, operation=operation)
            merged = {**current.model_dump(include=set(TaskCreate.model_fields)), **changes}
            payload = build_model(TaskCreate, merged, operation=operation, entity_id=task_id)
            if payload.after_task_id == task_id:
                raise ValidationError("A task cannot wait for itself", entity_id=task_id, operation=operation)
            await _check_references(payload, operation=operation)

            record = prepare_task_record(payload, now=now or datetime.now(UTC))
            task = await repository.update_task(task_id, record, operation=operation)

        logger.info("Updated task", extra={"task_id": task_id, "fields": sorted(changes)})
        return task


async def get_task(task_id: str) -> Task:
    return await repository.get_task(task_id)


async def list_tasks(*, status: TaskStatus | None = None) -> list[Task]:
    if status is None:
        return await repository.list_tasks()
    return await repository.list_tasks_with_status(status)


async def cancel_task(task_id: str, *, user_id: str, notes: str | None = None) -> Task:
    """Withdraw a task for good. An active assignment on it is closed.

    Raises:
        NotFoundError: If the task is missing
        InvalidTransitionError: If the task is already completed or cancelled
    """
    operation = "cancel_task"
    with span("task_service.cancel_task"):
        async with task_locks.hold(task_id), db_client.transaction():
            active = await repository.get_active_assignment_for_task(task_id)
            if active is not None:
                await repository.update_assignment(active.id, {"is_active": False}, operation=operation)
            task = await transition_task(task_id, TaskStatus.CANCELLED, operation=operation)
            await record_event(task_id=task_id, user_id=user_id, event_type=HistoryEventType.CANCELLED, notes=notes)

        logger.info("Cancelled task", extra={"task_id": task_id, "user_id": user_id})
        return task


async def create_location(data: dict[str, Any]) -> Location:
    """Create a physical, online or fuzzy location.

    Raises:
        ValidationError: If the fields do not match the location variant
    """
    with span("task_service.create_location"):
        payload = build_model(LocationCreate, data, operation="create_location")
        location = await repository.create_location(payload.model_dump(mode="json"))
        logger.info("Created location", extra={"location_id": location.id, "type": location.location_type.value})
        return location


async def list_locations() -> list[Location]:
    return await repository.list_locations()


async def create_time_window(data: dict[str, Any]) -> TimeWindow:
    payload = build_model(TimeWindowCreate, data, operation="create_time_window")
    record = payload.model_dump(mode="json")
    if payload.is_active:
        record["started_at"] = datetime.now(UTC).isoformat()
    return await repository.create_time_window(record)


async def activate_time_window(window_id: str, *, now: datetime | None = None) -> TimeWindow:
    """Declare a window started. Tasks bound to it become selectable."""
    window = await repository.update_time_window(
        window_id, {"is_active": True, "started_at": (now or datetime.now(UTC)).isoformat(), "ended_at": None}
    )
    logger.info("Activated time window", extra={"window_id": window_id, "name": window.name})
    return window


async def deactivate_time_window(window_id: str, *, now: datetime | None = None) -> TimeWindow:
    """Declare a window ended. Tasks bound to it stop being selectable."""
    window = await repository.update_time_window(
        window_id, {"is_active": False, "ended_at": (now or datetime.now(UTC)).isoformat()}
    )
    logger.info("Deactivated time window", extra={"window_id": window_id, "name": window.name})
    return window


async def create_weather_condition(data: dict[str, Any]) -> WeatherCondition:
    payload = build_model(WeatherConditionCreate, data, operation="create_weather_condition")
    return await repository.create_weather_condition(payload.model_dump(mode="json"))
