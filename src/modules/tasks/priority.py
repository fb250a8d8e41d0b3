"""Deadline-driven priority calculation.

The calculated priority is a projection of base priority, deadline and the
current time. It is cached on the task row by every write that could change it
and recomputed at selection time, but never trusted on its own.
"""

from datetime import datetime

from src.core.config import constants
from src.core.errors import ValidationError
from src.domain.task import Task


def _week_factor(days_left: float, multiplier: float) -> float:
    window = constants.URGENCY_WINDOW_DAYS
    return 1.0 + ((window - days_left) / window) * constants.WEEK_URGENCY_WEIGHT * multiplier


def calculate_priority(*, base: int, deadline: datetime | None, multiplier: float, now: datetime) -> int:
    """Compute the calculated priority of a task.

    - no deadline: base
    - overdue: maximum priority
    - under one day left: base * (1 + (1 - days_left) * multiplier)
    - under a week left: base * (1 + ((7 - days_left) / 7) * 0.5 * multiplier)
    - otherwise: base

    The result is truncated and clamped to [0, 100].

    Raises:
        ValidationError: If base is outside [0, 100] or multiplier is negative
    """
    if not constants.MIN_PRIORITY <= base <= constants.MAX_PRIORITY:
        raise ValidationError(f"Base priority must be between 0 and 100, got {base}", operation="calculate_priority")
    if multiplier < 0:
        raise ValidationError(
            f"Urgency multiplier must not be negative, got {multiplier}", operation="calculate_priority"
        )

    if deadline is None:
        return base

    days_left = (deadline - now).total_seconds() / constants.SECONDS_PER_DAY

    if days_left < 0:
        return constants.MAX_PRIORITY
    if days_left < 1:
        factor = 1.0 + (1.0 - days_left) * multiplier
    elif days_left < constants.URGENCY_WINDOW_DAYS:
        factor = _week_factor(days_left, multiplier)
    else:
        return base

    value = int(base * factor)
    return max(constants.MIN_PRIORITY, min(constants.MAX_PRIORITY, value))


def refresh_priority(task: Task, now: datetime) -> Task:
    """Return a copy of the task with its calculated priority recomputed for ``now``."""
    priority = calculate_priority(
        base=task.base_priority,
        deadline=task.deadline,
        multiplier=task.deadline_urgency_multiplier,
        now=now,
    )
    if priority == task.calculated_priority:
        return task
    return task.model_copy(update={"calculated_priority": priority})
