"""Assignment lifecycle: assign, start, complete and cancel.

A user holds at most one active assignment. ``assign`` serializes on the user
(then the task) and re-validates eligibility inside the write transaction, so
a stale selection can never be turned into an assignment.
"""

import logging
from datetime import UTC, datetime

from src.core import db_client
from src.core.errors import (
    ActiveAssignmentError,
    CollaboratorFailure,
    IneligibleTaskError,
    InvalidTransitionError,
    NotFoundError,
)
from src.core.locks import task_locks, user_locks
from src.core.logging import span
from src.core.message_templates import completion_gratification
from src.domain.assignment import TaskAssignment
from src.domain.context import GeoPoint, SelectionContext
from src.domain.history import HistoryEventType
from src.domain.task import TaskStatus
from src.interface.places_client import PlaceFinder
from src.models.service_models import CompletionResult
from src.modules.tasks import repository
from src.modules.tasks.dependencies import ensure_acyclic, is_satisfied
from src.modules.tasks.eligibility import check_eligibility
from src.modules.tasks.history import record_event
from src.modules.tasks.priority import calculate_priority
from src.modules.tasks.snapshot import load_snapshot
from src.modules.tasks.state_machine import transition_task


logger = logging.getLogger(__name__)


async def _get_active_assignment(assignment_id: str, *, operation: str) -> TaskAssignment:
    assignment = await repository.get_assignment(assignment_id, operation=operation)
    if not assignment.is_active:
        msg = f"Assignment {assignment_id} is no longer active"
        raise InvalidTransitionError(msg, entity_id=assignment_id, operation=operation)
    return assignment


async def current_assignment(user_id: str) -> TaskAssignment | None:
    """Return the assignment the user is working on, or None.

    Selection never offers an assigned task, so callers that want to resume
    work ask here before asking for the next task.
    """
    return await repository.get_active_assignment_for_user(user_id)


class _RecordedPlaces:
    """PlaceFinder that remembers answers so a second pass can replay them.

    Once ``replay_only`` is set, an unseen lookup fails instead of calling out.
    """

    def __init__(self, finder: PlaceFinder) -> None:
        self._finder = finder
        self._answers: dict[tuple[str, float, float, float], bool] = {}
        self.replay_only = False

    async def find_nearby(self, category: str, center: GeoPoint, radius_km: float) -> bool:
        key = (category, center.latitude, center.longitude, radius_km)
        if key in self._answers:
            return self._answers[key]
        if self.replay_only:
            raise CollaboratorFailure(f"No place lookup available for {category}", operation="assign")
        found = self._answers[key] = await self._finder.find_nearby(category, center, radius_km)
        return found


async def _require_eligible(
    task_id: str, context: SelectionContext, place_finder: PlaceFinder | None, *, operation: str
) -> None:
    snapshot = await load_snapshot()
    await ensure_acyclic(snapshot.edges, operation=operation)
    task = snapshot.tasks.get(task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found", entity_id=task_id, operation=operation)

    result = await check_eligibility(task, context, snapshot, place_finder=place_finder)
    if not result.eligible:
        raise IneligibleTaskError(
            f"Task {task_id} is not eligible: {result.reason}",
            rule=result.failed_rule,
            entity_id=task_id,
            operation=operation,
        )


async def assign(
    user_id: str,
    task_id: str,
    context: SelectionContext,
    *,
    place_finder: PlaceFinder | None = None,
) -> TaskAssignment:
    """Commit a user to a task.

    Eligibility is checked twice: once up front, where place lookups may call
    out, and again inside the write transaction against the committed state,
    replaying the recorded place answers.

    Raises:
        NotFoundError: If the task does not exist
        ActiveAssignmentError: If the user already has an active assignment
        IneligibleTaskError: If the task is not eligible right now
        DataIntegrityError: If the stored dependency graph contains a cycle
    """
    operation = "assign"
    with span("assignments.assign"):
        async with user_locks.hold(user_id), task_locks.hold(task_id):
            if await repository.get_active_assignment_for_user(user_id) is not None:
                msg = f"User {user_id} already has an active assignment"
                raise ActiveAssignmentError(msg, entity_id=user_id, operation=operation)

            places = _RecordedPlaces(place_finder) if place_finder is not None else None
            await _require_eligible(task_id, context, places, operation=operation)

            now = context.now
            location = context.user_location
            if places is not None:
                places.replay_only = True
            async with db_client.transaction():
                await _require_eligible(task_id, context, places, operation=operation)

                assignment = await repository.create_assignment(
                    {
                        "user_id": user_id,
                        "task_id": task_id,
                        "assigned_at": now.isoformat(),
                        "assigned_latitude": location.latitude if location else None,
                        "assigned_longitude": location.longitude if location else None,
                        "is_active": True,
                    }
                )
                await transition_task(task_id, TaskStatus.ASSIGNED, operation=operation)
                await record_event(
                    task_id=task_id,
                    user_id=user_id,
                    event_type=HistoryEventType.STARTED,
                    occurred_at=now,
                    notes="assigned",
                )

        logger.info(
            "Assigned task",
            extra={"user_id": user_id, "task_id": task_id, "assignment_id": assignment.id},
        )
        return assignment


async def start(assignment_id: str, *, now: datetime | None = None) -> TaskAssignment:
    """Mark work on an active assignment as started.

    Raises:
        NotFoundError: If the assignment does not exist
        InvalidTransitionError: If the assignment is not active or already started
    """
    operation = "start"
    now = now or datetime.now(UTC)
    with span("assignments.start"):
        async with db_client.transaction():
            assignment = await _get_active_assignment(assignment_id, operation=operation)
            if assignment.started_at is not None:
                msg = f"Assignment {assignment_id} was already started"
                raise InvalidTransitionError(msg, entity_id=assignment_id, operation=operation)

            updated = await repository.update_assignment(
                assignment_id, {"started_at": now.isoformat()}, operation=operation
            )
            await record_event(
                task_id=assignment.task_id,
                user_id=assignment.user_id,
                event_type=HistoryEventType.STARTED,
                occurred_at=now,
                notes="work started",
            )
        return updated


async def _unblock_dependents(task_id: str, *, now: datetime) -> list[str]:
    """Return blocked tasks waiting on ``task_id`` to pending once all their sub-tasks are done."""
    unblocked: list[str] = []
    for edge in await repository.list_edges_to(task_id):
        dependent = await repository.get_task(edge.task_id, operation="complete")
        if dependent.status != TaskStatus.BLOCKED or not dependent.llm_generated_subtasks:
            continue
        if not await is_satisfied(dependent.id):
            continue

        for blocker in await repository.list_open_blockers(dependent.id):
            await repository.update_blocker(
                blocker.id,
                {
                    "resolved": True,
                    "resolved_at": now.isoformat(),
                    "resolution_notes": "All sub-tasks completed",
                },
                operation="complete",
            )
        priority = calculate_priority(
            base=dependent.base_priority,
            deadline=dependent.deadline,
            multiplier=dependent.deadline_urgency_multiplier,
            now=now,
        )
        await transition_task(
            dependent.id, TaskStatus.PENDING, operation="complete", extra={"calculated_priority": priority}
        )
        unblocked.append(dependent.id)
    return unblocked


async def complete(assignment_id: str, *, now: datetime | None = None) -> CompletionResult:
    """Finish an assignment and its task.

    Records a completed history entry with a gratification message, then
    returns blocked dependents to pending when their last sub-task is done.

    Raises:
        NotFoundError: If the assignment does not exist
        InvalidTransitionError: If the assignment is not active
    """
    operation = "complete"
    now = now or datetime.now(UTC)
    with span("assignments.complete"):
        assignment = await _get_active_assignment(assignment_id, operation=operation)
        async with task_locks.hold(assignment.task_id), db_client.transaction():
            assignment = await _get_active_assignment(assignment_id, operation=operation)
            updated = await repository.update_assignment(
                assignment_id,
                {"is_active": False, "completed_at": now.isoformat()},
                operation=operation,
            )
            task = await transition_task(
                assignment.task_id,
                TaskStatus.COMPLETED,
                operation=operation,
                extra={"completed_at": now.isoformat(), "completed_by_id": assignment.user_id},
            )

            previous = await repository.list_history_for_user(assignment.user_id)
            completed_before = sum(1 for entry in previous if entry.event_type == HistoryEventType.COMPLETED)
            message = completion_gratification(task_title=task.title, completed_count=completed_before)
            await record_event(
                task_id=task.id,
                user_id=assignment.user_id,
                event_type=HistoryEventType.COMPLETED,
                occurred_at=now,
                gratification_message=message,
            )
            unblocked = await _unblock_dependents(task.id, now=now)

        logger.info(
            "Completed task",
            extra={"assignment_id": assignment_id, "task_id": task.id, "unblocked": unblocked},
        )
        return CompletionResult(
            assignment=updated, task=task, gratification_message=message, unblocked_task_ids=unblocked
        )


async def cancel(assignment_id: str, *, now: datetime | None = None, notes: str | None = None) -> TaskAssignment:
    """Give up an assignment; the task returns to pending with its dependencies untouched.

    Raises:
        NotFoundError: If the assignment does not exist
        InvalidTransitionError: If the assignment is not active
    """
    operation = "cancel"
    now = now or datetime.now(UTC)
    with span("assignments.cancel"):
        assignment = await _get_active_assignment(assignment_id, operation=operation)
        async with task_locks.hold(assignment.task_id), db_client.transaction():
            assignment = await _get_active_assignment(assignment_id, operation=operation)
            updated = await repository.update_assignment(assignment_id, {"is_active": False}, operation=operation)
            await transition_task(assignment.task_id, TaskStatus.PENDING, operation=operation)
            await record_event(
                task_id=assignment.task_id,
                user_id=assignment.user_id,
                event_type=HistoryEventType.CANCELLED,
                occurred_at=now,
                notes=notes,
            )

        logger.info("Cancelled assignment", extra={"assignment_id": assignment_id, "task_id": assignment.task_id})
        return updated
