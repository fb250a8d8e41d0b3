"""Scheduled jobs for the tasks module.

- Recurring task generation
- Dependency graph integrity check
"""

import logging

from src.core.config import settings
from src.core.module import ScheduledJob
from src.modules.tasks import repository
from src.modules.tasks.dependencies import ensure_acyclic
from src.modules.tasks.recurrence import generate_due_instances


logger = logging.getLogger(__name__)

INTEGRITY_CHECK_CRON = "0 3 * * *"


async def generate_recurring_tasks() -> None:
    """Create task instances for every due recurring schedule."""
    logger.info("Running recurring task generation job")
    generated = await generate_due_instances()
    logger.info("Recurring task generation finished", extra={"generated": len(generated)})


async def check_dependency_graph() -> None:
    """Verify the stored dependency edges still form a DAG.

    A cycle raises DataIntegrityError after alerting the operator, which the
    job tracker then records as a failed run.
    """
    edges = await repository.list_edges()
    await ensure_acyclic(edges, operation="check_dependency_graph")
    logger.info("Dependency graph check passed", extra={"edges": len(edges)})


def get_scheduled_jobs() -> list[ScheduledJob]:
    """Return the tasks module's background jobs."""
    return [
        ScheduledJob(
            id="generate_recurring_tasks",
            name="Generate recurring task instances",
            cron=settings.recurrence_check_cron,
            func=generate_recurring_tasks,
        ),
        ScheduledJob(
            id="check_dependency_graph",
            name="Dependency graph integrity check",
            cron=INTEGRITY_CHECK_CRON,
            func=check_dependency_graph,
        ),
    ]
