"""Task status transitions."""

import logging
from typing import Any

from src.core.errors import InvalidTransitionError
from src.domain.task import Task, TaskStatus
from src.modules.tasks import repository


logger = logging.getLogger(__name__)


TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.ASSIGNED, TaskStatus.BLOCKED, TaskStatus.CANCELLED},
    TaskStatus.ASSIGNED: {TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.BLOCKED, TaskStatus.CANCELLED},
    TaskStatus.BLOCKED: {TaskStatus.PENDING, TaskStatus.BLOCKED, TaskStatus.CANCELLED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(task: Task, target: TaskStatus, *, operation: str) -> None:
    """Raise InvalidTransitionError if ``task`` may not move to ``target``."""
    if not can_transition(task.status, target):
        msg = f"Cannot move task {task.id} from {task.status.value} to {target.value}"
        raise InvalidTransitionError(msg, entity_id=task.id, operation=operation)


async def transition_task(
    task_id: str,
    target: TaskStatus,
    *,
    operation: str,
    extra: dict[str, Any] | None = None,
) -> Task:
    """Move a task to ``target`` after checking the transition table.

    Must run inside the caller's transaction when combined with other writes.
    """
    task = await repository.get_task(task_id, operation=operation)
    ensure_transition(task, target, operation=operation)
    updated = await repository.update_task(task_id, {"status": target, **(extra or {})}, operation=operation)
    logger.info(
        "Task status changed",
        extra={"task_id": task_id, "from": task.status.value, "to": target.value, "operation": operation},
    )
    return updated
