"""Blocker reporting and decomposition into ordered sub-tasks.

The advisor is consulted before any write. Its suggestions are then applied
in one transaction: the blocker, the status change, the sub-tasks and their
dependency edges land together or not at all. If the advisor cannot help,
the blocker is still recorded and the report is marked degraded.
"""

import asyncio
import logging
from datetime import UTC, datetime

from src.agents.base import Deps, SubtaskSuggestion, TaskAdvisor
from src.agents.retry_handler import AgentRetryHandler, get_retry_handler
from src.core import db_client
from src.core.config import settings
from src.core.errors import (
    CollaboratorError,
    CollaboratorFailure,
    CollaboratorTimeoutError,
    InvalidTransitionError,
    ValidationError,
)
from src.core.locks import GRAPH_LOCK_KEY, graph_locks, task_locks
from src.core.logging import span
from src.core.message_templates import blocker_gratification
from src.domain.blocker import Blocker
from src.domain.create_models import TaskCreate
from src.domain.history import HistoryEventType
from src.domain.location import Location
from src.domain.task import Task, TaskStatus
from src.domain.types import build_model
from src.models.service_models import BlockerReport
from src.modules.tasks import repository
from src.modules.tasks.dependencies import insert_edge_checked, is_satisfied
from src.modules.tasks.history import record_event
from src.modules.tasks.priority import calculate_priority
from src.modules.tasks.service import prepare_task_record
from src.modules.tasks.state_machine import transition_task


logger = logging.getLogger(__name__)

_BLOCKABLE = frozenset({TaskStatus.PENDING, TaskStatus.ASSIGNED, TaskStatus.BLOCKED})


def _ensure_blockable(task: Task, *, operation: str) -> None:
    if task.status not in _BLOCKABLE:
        msg = f"Cannot report a blocker on a {task.status.value} task"
        raise InvalidTransitionError(msg, entity_id=task.id, operation=operation)


def _match_location(name: str | None, locations: list[Location]) -> str | None:
    if not name:
        return None
    wanted = name.strip().casefold()
    for location in locations:
        if location.name.strip().casefold() == wanted:
            return location.id
    return None


def _subtask_payload(
    suggestion: SubtaskSuggestion, parent: Task, locations: list[Location], *, operation: str
) -> TaskCreate:
    return build_model(
        TaskCreate,
        {
            "title": suggestion.title,
            "description": suggestion.description,
            "location_id": _match_location(suggestion.location_name, locations),
            "base_priority": parent.base_priority,
            "deadline": suggestion.deadline,
            "deadline_urgency_multiplier": parent.deadline_urgency_multiplier,
            "estimated_duration_minutes": suggestion.estimated_duration_minutes,
            "category": parent.category,
            "parent_task_id": parent.id,
            "created_by_id": parent.created_by_id,
        },
        operation=operation,
        entity_id=parent.id,
    )


async def _decompose(advisor: TaskAdvisor, description: str, deps: Deps) -> list[SubtaskSuggestion]:
    """One bounded advisor attempt; every failure surfaces as a CollaboratorError."""
    try:
        return await asyncio.wait_for(
            advisor.decompose(description, deps), timeout=settings.collaborator_timeout_seconds
        )
    except CollaboratorError:
        raise
    except TimeoutError as e:
        raise CollaboratorTimeoutError("Blocker decomposition timed out", operation="report_blocker") from e
    except Exception as e:
        msg = f"Blocker decomposition failed: {type(e).__name__}: {e}"
        raise CollaboratorFailure(msg, operation="report_blocker") from e


async def report_blocker(
    task_id: str,
    user_id: str,
    description: str,
    advisor: TaskAdvisor,
    *,
    now: datetime | None = None,
    retry_handler: AgentRetryHandler | None = None,
) -> BlockerReport:
    """Record a blocker on a task and break the task into sub-tasks.

    Every call records a new blocker; blockers are a log and are never merged.

    Returns:
        BlockerReport with the blocker, the new sub-tasks in suggested order,
        and ``degraded=True`` if the advisor failed after its retries

    Raises:
        ValidationError: If the description is blank
        NotFoundError: If the task does not exist
        InvalidTransitionError: If the task is completed or cancelled
    """
    operation = "report_blocker"
    now = now or datetime.now(UTC)
    description = description.strip()
    if not description:
        raise ValidationError("Blocker description must not be blank", entity_id=task_id, operation=operation)

    with span("blockers.report_blocker"):
        task = await repository.get_task(task_id, operation=operation)
        _ensure_blockable(task, operation=operation)
        locations = await repository.list_locations()

        deps = Deps(
            current_time=now,
            task_title=task.title,
            task_description=task.description,
            location_names=[location.name for location in locations],
        )
        handler = retry_handler or get_retry_handler()
        suggestions: list[SubtaskSuggestion] = []
        error: str | None = None
        try:
            suggestions = await handler.execute_with_retry(_decompose, advisor, description, deps)
        except CollaboratorError as e:
            error = str(e) or type(e).__name__
            logger.warning(
                "Blocker decomposition failed, recording blocker without sub-tasks",
                extra={"task_id": task_id, "error": error},
            )

        payloads = [_subtask_payload(s, task, locations, operation=operation) for s in suggestions]

        async with task_locks.hold(task_id), graph_locks.hold(GRAPH_LOCK_KEY), db_client.transaction():
            task = await repository.get_task(task_id, operation=operation)
            _ensure_blockable(task, operation=operation)

            blocker = await repository.create_blocker(
                {"task_id": task_id, "description": description, "resolved": False, "created_by_id": user_id}
            )
            active = await repository.get_active_assignment_for_task(task_id)
            if active is not None:
                await repository.update_assignment(active.id, {"is_active": False}, operation=operation)
            await transition_task(task_id, TaskStatus.BLOCKED, operation=operation)

            subtasks: list[Task] = []
            for payload in payloads:
                record = prepare_task_record(payload, now=now)
                record["status"] = TaskStatus.PENDING
                subtask = await repository.create_task(record)
                await insert_edge_checked(task_id, subtask.id, operation=operation)
                subtasks.append(subtask)
            if subtasks:
                await repository.update_task(task_id, {"llm_generated_subtasks": True}, operation=operation)

            await record_event(
                task_id=task_id,
                user_id=user_id,
                event_type=HistoryEventType.BLOCKED,
                occurred_at=now,
                blocker_id=blocker.id,
                gratification_message=blocker_gratification(task_title=task.title, subtask_count=len(subtasks)),
                notes=description,
            )

        logger.info(
            "Reported blocker",
            extra={
                "task_id": task_id,
                "blocker_id": blocker.id,
                "subtasks": len(subtasks),
                "degraded": error is not None,
            },
        )
        return BlockerReport(blocker=blocker, subtasks=subtasks, degraded=error is not None, error=error)


async def resolve_blocker(
    blocker_id: str,
    *,
    notes: str | None = None,
    now: datetime | None = None,
) -> Blocker:
    """Mark a blocker resolved.

    The task returns to pending once none of its blockers are open and all of
    its prerequisites are completed.

    Raises:
        NotFoundError: If the blocker does not exist
        InvalidTransitionError: If the blocker is already resolved
    """
    operation = "resolve_blocker"
    now = now or datetime.now(UTC)
    with span("blockers.resolve_blocker"):
        blocker = await repository.get_blocker(blocker_id, operation=operation)
        async with task_locks.hold(blocker.task_id), db_client.transaction():
            blocker = await repository.get_blocker(blocker_id, operation=operation)
            if blocker.resolved:
                msg = f"Blocker {blocker_id} is already resolved"
                raise InvalidTransitionError(msg, entity_id=blocker_id, operation=operation)

            resolved = await repository.update_blocker(
                blocker_id,
                {"resolved": True, "resolved_at": now.isoformat(), "resolution_notes": notes},
                operation=operation,
            )
            task = await repository.get_task(blocker.task_id, operation=operation)
            still_open = await repository.list_open_blockers(task.id)
            if task.status == TaskStatus.BLOCKED and not still_open and await is_satisfied(task.id):
                priority = calculate_priority(
                    base=task.base_priority,
                    deadline=task.deadline,
                    multiplier=task.deadline_urgency_multiplier,
                    now=now,
                )
                await transition_task(
                    task.id, TaskStatus.PENDING, operation=operation, extra={"calculated_priority": priority}
                )
                logger.info("Task unblocked", extra={"task_id": task.id, "blocker_id": blocker_id})

        return resolved
