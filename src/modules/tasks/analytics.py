"""Analytics for per-user completion statistics.

Key Concepts:
- Completed count: distinct tasks the user completed. Completing a task is a
  one-way transition, so a task is never counted twice.
- Blocked count: distinct tasks the user reported at least one blocker on.
  Blockers are a log, so several reports on one task count once here.
- Gratification count: distinct tasks the user received gratification on,
  from a gratification event or an entry carrying a gratification message.
"""

import logging

from src.core.logging import span
from src.domain.history import HistoryEventType
from src.models.service_models import UserTaskStats
from src.modules.tasks.history import user_history


logger = logging.getLogger(__name__)


async def get_stats(user_id: str) -> UserTaskStats:
    """Summarize a user's history.

    Args:
        user_id: User to summarize

    Returns:
        UserTaskStats; a user with no history gets zero counts
    """
    with span("analytics.get_stats"):
        entries = await user_history(user_id)

        completed = [entry for entry in entries if entry.event_type == HistoryEventType.COMPLETED]
        blocked_tasks = {entry.task_id for entry in entries if entry.event_type == HistoryEventType.BLOCKED}
        gratified_tasks = {
            entry.task_id
            for entry in entries
            if entry.gratification_message or entry.event_type == HistoryEventType.GRATIFICATION
        }
        last_completion_at = max((entry.occurred_at for entry in completed), default=None)

        stats = UserTaskStats(
            user_id=user_id,
            completed_count=len({entry.task_id for entry in completed}),
            blocked_count=len(blocked_tasks),
            gratification_count=len(gratified_tasks),
            last_completion_at=last_completion_at,
        )
        logger.debug("Computed user stats", extra={"user_id": user_id, "completed": stats.completed_count})
        return stats
