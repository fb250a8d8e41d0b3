"""Recurring schedules that produce new task instances from a template task."""

import logging
from datetime import UTC, datetime
from typing import Any

from src.core import db_client
from src.core.errors import ValidationError
from src.core.logging import span
from src.core.recurrence_parser import cron_to_human, next_occurrence, schedule_to_cron
from src.core.time_rules import band_start, local_zone
from src.domain.create_models import RecurringScheduleCreate, TaskCreate
from src.domain.schedule import RecurringSchedule
from src.domain.task import Task, TaskStatus, TimeConstraintType
from src.domain.types import build_model, id_sort_key
from src.models.service_models import GeneratedInstance
from src.modules.tasks import repository
from src.modules.tasks.service import prepare_task_record


logger = logging.getLogger(__name__)

_TEMPLATE_FIELDS = (
    "title",
    "description",
    "location_id",
    "time_window_id",
    "weather_condition_id",
    "requires_weather_condition",
    "base_priority",
    "deadline_urgency_multiplier",
    "estimated_duration_minutes",
    "category",
    "created_by_id",
)

_RECURRING_TEMPLATE = {
    "time_constraint_type": TimeConstraintType.RECURRING,
    "absolute_start_time": None,
    "absolute_end_time": None,
    "relative_time_of_day": None,
    "after_task_id": None,
    "after_blocker_id": None,
}


async def create_schedule(data: dict[str, Any], *, now: datetime | None = None) -> RecurringSchedule:
    """Attach a recurring schedule to a template task.

    The template is switched to the recurring constraint so it is never
    selected itself; only the instances generated from it are.

    Raises:
        ValidationError: If the kind's fields are missing or the expression is invalid
        NotFoundError: If the template task or the time window is missing
    """
    operation = "create_schedule"
    now = now or datetime.now(UTC)
    with span("recurrence.create_schedule"):
        payload = build_model(RecurringScheduleCreate, data, operation=operation)
        template = await repository.get_task(payload.task_id, operation=operation)
        if template.status in {TaskStatus.COMPLETED, TaskStatus.CANCELLED}:
            msg = f"Template task {template.id} is {template.status.value}"
            raise ValidationError(msg, entity_id=template.id, operation=operation)
        if payload.time_window_id is not None:
            await repository.get_time_window(payload.time_window_id)

        cron = schedule_to_cron(
            recurrence_type=payload.recurrence_type,
            time_of_day=band_start(payload.time_of_day) if payload.time_of_day else None,
            day_of_week=payload.day_of_week,
            day_of_month=payload.day_of_month,
            cron_expression=payload.cron_expression,
        )
        first = next_occurrence(cron=cron, after=now, tz=local_zone())

        async with db_client.transaction():
            record = payload.model_dump(mode="json")
            record.update({"cron_expression": cron, "next_occurrence": first.isoformat(), "is_active": True})
            schedule = await repository.create_schedule(record)
            await repository.update_task(template.id, dict(_RECURRING_TEMPLATE), operation=operation)

        logger.info(
            "Created recurring schedule",
            extra={"schedule_id": schedule.id, "task_id": template.id, "recurrence": cron_to_human(cron)},
        )
        return schedule


def _instance_payload(template: Task, schedule: RecurringSchedule, *, deadline: datetime) -> TaskCreate:
    data: dict[str, Any] = {field: getattr(template, field) for field in _TEMPLATE_FIELDS}
    data["deadline"] = deadline
    if schedule.time_of_day is not None:
        data["time_constraint_type"] = TimeConstraintType.RELATIVE_TIME_OF_DAY
        data["relative_time_of_day"] = schedule.time_of_day
    return build_model(TaskCreate, data, operation="generate_due_instances", entity_id=schedule.id)


async def _generate_one(schedule: RecurringSchedule, *, now: datetime) -> GeneratedInstance | None:
    operation = "generate_due_instances"
    after = max(now, schedule.next_occurrence)
    following = next_occurrence(cron=schedule.cron_expression, after=after, tz=local_zone())

    async with db_client.transaction():
        template = await repository.get_task(schedule.task_id, operation=operation)
        if template.status == TaskStatus.CANCELLED:
            await repository.update_schedule(schedule.id, {"is_active": False})
            logger.info("Deactivated schedule of cancelled template", extra={"schedule_id": schedule.id})
            return None

        instance: Task | None = None
        window_inactive = False
        if schedule.time_window_id is not None:
            window = await repository.get_time_window(schedule.time_window_id)
            window_inactive = not window.is_active

        if window_inactive:
            logger.info("Skipped instance outside time window", extra={"schedule_id": schedule.id})
        else:
            record = prepare_task_record(_instance_payload(template, schedule, deadline=following), now=now)
            record["status"] = TaskStatus.PENDING
            instance = await repository.create_task(record)

        advance: dict[str, Any] = {"next_occurrence": following.isoformat()}
        if instance is not None:
            advance["last_generated_at"] = now.isoformat()
        await repository.update_schedule(schedule.id, advance)

    if instance is None:
        return None
    logger.info("Generated recurring instance", extra={"schedule_id": schedule.id, "task_id": instance.id})
    return GeneratedInstance(schedule_id=schedule.id, task=instance)


async def generate_due_instances(now: datetime | None = None) -> list[GeneratedInstance]:
    """Create one pending task for every active schedule that is due, then advance it.

    Missed occurrences are not back-filled: a schedule that fell behind yields
    one instance and moves to its first occurrence after ``now``.
    """
    now = now or datetime.now(UTC)
    with span("recurrence.generate_due_instances"):
        schedules = sorted(await repository.list_active_schedules(), key=lambda s: id_sort_key(s.id))
        generated: list[GeneratedInstance] = []
        for schedule in schedules:
            if schedule.next_occurrence > now or not schedule.cron_expression:
                continue
            result = await _generate_one(schedule, now=now)
            if result is not None:
                generated.append(result)
        return generated
