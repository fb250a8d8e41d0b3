"""Task selector: the single best next task for a user.

Selection is a pure read. It never assigns; assignment re-validates at commit.
"""

import logging
from zoneinfo import ZoneInfo

from src.core.logging import span
from src.domain.context import SelectionContext
from src.domain.task import Task
from src.domain.types import id_sort_key
from src.interface.places_client import PlaceFinder
from src.modules.tasks.dependencies import ensure_acyclic
from src.modules.tasks.eligibility import is_eligible
from src.modules.tasks.priority import refresh_priority
from src.modules.tasks.snapshot import EngineSnapshot, load_snapshot


logger = logging.getLogger(__name__)


def selection_key(task: Task) -> tuple:
    """Highest calculated priority first, then earliest created, then lowest id."""
    return (-task.calculated_priority, task.created, id_sort_key(task.id))


async def rank_tasks(
    context: SelectionContext,
    snapshot: EngineSnapshot,
    *,
    place_finder: PlaceFinder | None = None,
    tz: ZoneInfo | None = None,
) -> list[Task]:
    """Return every eligible pending task with fresh priorities, best first."""
    candidates = [
        refresh_priority(task, context.now)
        for task in snapshot.pending_tasks()
        if await is_eligible(task, context, snapshot, place_finder=place_finder, tz=tz)
    ]
    return sorted(candidates, key=selection_key)


async def next_task(
    user_id: str,
    context: SelectionContext,
    *,
    place_finder: PlaceFinder | None = None,
    snapshot: EngineSnapshot | None = None,
    tz: ZoneInfo | None = None,
) -> Task | None:
    """Pick the pending task the user should do next, or None if nothing is actionable.

    Only pending tasks are candidates. A task the user already holds is
    reported by ``assignments.current_assignment``, not here.

    Raises:
        DataIntegrityError: If the stored dependency graph contains a cycle
    """
    with span("selector.next_task"):
        snapshot = snapshot or await load_snapshot()
        await ensure_acyclic(snapshot.edges, operation="next_task")

        ranked = await rank_tasks(context, snapshot, place_finder=place_finder, tz=tz)
        if not ranked:
            logger.info("No eligible task", extra={"user_id": user_id})
            return None

        chosen = ranked[0]
        logger.info(
            "Selected next task",
            extra={"user_id": user_id, "task_id": chosen.id, "priority": chosen.calculated_priority},
        )
        return chosen
