"""Append-only task history log."""

from datetime import UTC, datetime

from src.domain.history import HistoryEventType, TaskHistory
from src.modules.tasks import repository


async def record_event(
    *,
    task_id: str,
    user_id: str,
    event_type: HistoryEventType,
    occurred_at: datetime | None = None,
    blocker_id: str | None = None,
    gratification_message: str | None = None,
    notes: str | None = None,
) -> TaskHistory:
    """Append one history entry. Entries are never updated or deleted."""
    return await repository.create_history(
        {
            "task_id": task_id,
            "user_id": user_id,
            "event_type": event_type,
            "blocker_id": blocker_id,
            "gratification_message": gratification_message,
            "notes": notes,
            "occurred_at": (occurred_at or datetime.now(UTC)).isoformat(),
        }
    )


async def task_history(task_id: str) -> list[TaskHistory]:
    """History entries for a task, oldest first."""
    entries = await repository.list_history_for_task(task_id)
    return sorted(entries, key=lambda entry: (entry.occurred_at, entry.created))


async def user_history(user_id: str) -> list[TaskHistory]:
    """History entries caused by a user, oldest first."""
    entries = await repository.list_history_for_user(user_id)
    return sorted(entries, key=lambda entry: (entry.occurred_at, entry.created))
