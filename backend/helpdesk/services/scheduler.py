"""
Background Job Scheduler.

WHAT: Runs the periodic auto-close of tickets that have stayed resolved
longer than AUTO_CLOSE_RESOLVED_AFTER_DAYS.

WHY: Resolved tickets nobody reopens should not linger. The job is off by
default (AUTO_CLOSE_ENABLED) and nothing else depends on it.

HOW: APScheduler AsyncIOScheduler with an in-memory job store. The job
opens its own database session and commits once per run.

Example:
    # In main.py lifespan:
    await start_scheduler()
    ...
    await shutdown_scheduler()
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.interval import IntervalTrigger

from helpdesk.core.config import settings
from helpdesk.db.session import AsyncSessionLocal
from helpdesk.services.ticket_service import TicketService


logger = logging.getLogger(__name__)

AUTO_CLOSE_JOB_ID = "auto_close_resolved_tickets"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the global scheduler instance."""
    return _scheduler


async def run_auto_close() -> int:
    """
    Close aged resolved tickets in a fresh session.

    Returns:
        Number of tickets closed (0 if the run failed)
    """
    async with AsyncSessionLocal() as session:
        try:
            closed = await TicketService(session).auto_close_resolved()
            await session.commit()
            return closed
        except Exception:
            await session.rollback()
            logger.exception("Auto-close job failed")
            return 0


async def start_scheduler() -> None:
    """
    Start the background job scheduler if auto-close is enabled.

    Note: Call this from the application lifespan.
    """
    global _scheduler

    if not settings.AUTO_CLOSE_ENABLED:
        logger.info("Auto-close disabled, scheduler not started")
        return

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return

    _scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults={
            "coalesce": True,  # Combine multiple missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
        timezone="UTC",
    )

    _scheduler.add_job(
        func=run_auto_close,
        trigger=IntervalTrigger(seconds=settings.AUTO_CLOSE_INTERVAL_SECONDS),
        id=AUTO_CLOSE_JOB_ID,
        name="Auto-close resolved tickets",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info(
        f"Scheduler started with auto-close every {settings.AUTO_CLOSE_INTERVAL_SECONDS} seconds"
    )


async def shutdown_scheduler() -> None:
    """Shut down the background job scheduler."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        logger.info("Scheduler not running")
        return

    logger.info("Shutting down scheduler...")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler shut down successfully")


def get_scheduler_status() -> dict:
    """
    Get scheduler status information for the health endpoint.
    """
    if _scheduler is None:
        return {
            "running": False,
            "jobs": [],
            "message": "Scheduler not initialized",
        }

    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })

    return {
        "running": _scheduler.running,
        "jobs": jobs,
        "message": "Scheduler is running" if _scheduler.running else "Scheduler is paused",
    }
