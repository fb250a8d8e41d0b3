"""Task selection engine background worker.

Initializes storage and runs the scheduled jobs (recurring task generation and
the dependency graph integrity check). Request-scoped operations are served
through ``src.interface.engine_api.TaskEngine`` by the embedding application.

Run with ``python -m src.main``.
"""

import asyncio
import logging
import signal
import sys
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from src.core.config import settings
from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_pydantic_ai
from src.core.module_registry import ensure_default_modules, get_all_scheduled_jobs
from src.core.scheduler import start_scheduler, stop_scheduler
from src.core.scheduler_tracker import job_tracker


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Check settings needed at runtime.

    Missing collaborator credentials only degrade features (blocker
    decomposition, fuzzy locations), so they are reported but not fatal.

    Raises:
        ValueError: If the configured timezone or cron schedule is invalid
    """
    try:
        ZoneInfo(settings.timezone)
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"Unknown timezone: {settings.timezone}") from e
    if not croniter.is_valid(settings.recurrence_check_cron):
        raise ValueError(f"Invalid RECURRENCE_CHECK_CRON: {settings.recurrence_check_cron}")

    for field_name, service_name in (
        ("openrouter_api_key", "OpenRouter"),
        ("google_maps_api_key", "Google Places"),
    ):
        status = "ok" if getattr(settings, field_name) else "missing"
        logger.info("startup_validation", extra={"service": service_name, "status": status})


def scheduler_health() -> dict[str, Any]:
    """Summarize job statuses and the dead letter queue."""
    ensure_default_modules()
    job_statuses = {job.id: job_tracker.get_job_status(job.id) for job in get_all_scheduled_jobs()}
    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())
    overall_status = "degraded" if has_failures else "healthy"
    if dlq:
        overall_status = "critical"

    return {
        "status": overall_status,
        "jobs": job_statuses,
        "dead_letter_queue_size": len(dlq),
        "dead_letter_queue": dlq,
    }


async def run() -> None:
    """Start the worker and block until SIGINT or SIGTERM."""
    configure_logfire()
    try:
        validate_startup_configuration()
    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    await init_db()
    logger.info("Database initialized")

    instrument_pydantic_ai()
    start_scheduler()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        stop_scheduler()
        await close_connection()
        logger.info("Worker stopped", extra={"health": scheduler_health()["status"]})


if __name__ == "__main__":
    asyncio.run(run())
