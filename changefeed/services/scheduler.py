"""Internal task scheduler using APScheduler.

Runs the daily repository sweep within the FastAPI process. Uses
PostgreSQL advisory locks to prevent duplicate execution when multiple
instances are running.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import text

from changefeed.config import settings
from changefeed.core.database import direct_session_maker

logger = logging.getLogger(__name__)

# Advisory lock IDs (arbitrary unique integers, one per job)
REPO_SWEEP_LOCK_ID = 730114


@asynccontextmanager
async def advisory_lock(lock_id: int) -> AsyncIterator[bool]:
    """
    Acquire a PostgreSQL advisory lock for the duration of the context.

    Advisory locks are session-level, so this holds a direct (non-pooled)
    connection. pg_try_advisory_lock() returns immediately; if another
    process holds the lock we yield False and the caller skips.
    """
    async with direct_session_maker() as session:
        result = await session.execute(
            text("SELECT pg_try_advisory_lock(:lock_id)"),
            {"lock_id": lock_id},
        )
        acquired = result.scalar()

        if not acquired:
            yield False
            return

        try:
            yield True
        finally:
            await session.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"),
                {"lock_id": lock_id},
            )
            await session.commit()


async def run_repo_sweep() -> dict[str, Any] | None:
    """
    Execute the repository sweep with advisory lock protection.

    Returns the report dict if executed, None if skipped (lock held by another instance).
    """
    async with advisory_lock(REPO_SWEEP_LOCK_ID) as acquired:
        if not acquired:
            logger.info("[scheduler] Repo-sweep: skipped (another instance is running)")
            return None

        logger.info("[scheduler] Repo-sweep: starting")

        try:
            from changefeed.services.ingestion.sweep import repository_sweeper

            report = await repository_sweeper.run()

            logger.info(
                f"[scheduler] Repo-sweep: completed "
                f"({report.repos_indexed} indexed, "
                f"{report.repos_failed} failed, "
                f"{report.duration_seconds}s)"
            )
            return asdict(report)

        except Exception as e:
            logger.exception(f"[scheduler] Repo-sweep: failed with error: {e}")
            return None


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        # Repo sweep: daily at configured hour (UTC)
        self._scheduler.add_job(
            run_repo_sweep,
            trigger=CronTrigger(hour=settings.sweep_hour, minute=0, timezone="UTC"),
            id="repo_sweep",
            name="Daily Repository Sweep",
            replace_existing=True,
        )

        self._scheduler.start()
        logger.info(f"[scheduler] Started with repo-sweep at {settings.sweep_hour:02d}:00 UTC")

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            logger.info("[scheduler] Stopped")

    async def trigger_now(self, job_id: str) -> dict[str, Any] | None:
        """
        Manually trigger a job immediately (for testing/debugging).

        Returns the job result or None if job not found.
        """
        if job_id == "repo_sweep":
            return await run_repo_sweep()
        return None


scheduler = Scheduler()
