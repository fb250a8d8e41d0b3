"""Scheduler for background jobs declared by registered modules."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.core.config import settings
from src.core.module import ScheduledJob
from src.core.module_registry import ensure_default_modules, get_all_scheduled_jobs
from src.core.scheduler_tracker import retry_job_with_backoff


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=settings.timezone)


def _register_job(job: ScheduledJob) -> None:
    async def run() -> None:
        await retry_job_with_backoff(job.func, job.id)

    scheduler.add_job(
        run,
        trigger=CronTrigger.from_crontab(job.cron, timezone=settings.timezone),
        id=job.id,
        name=job.name,
        replace_existing=True,
    )
    logger.info("Scheduled job", extra={"job_id": job.id, "cron": job.cron})


def start_scheduler() -> None:
    """Register every module job and start the scheduler."""
    logger.info("Starting scheduler")
    ensure_default_modules()

    for job in get_all_scheduled_jobs():
        _register_job(job)

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler, waiting for running jobs to finish."""
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
