"""Periodic sweep: re-ingest the most-followed tracked repositories.

Each repository runs in its own session; one failing repository never
stops the rest (its freshness stamp still advances).
"""

import asyncio
import logging
import time
import uuid as uuid_pkg
from dataclasses import dataclass, field
from typing import Any

from changefeed.config import settings
from changefeed.core.database import async_session_maker
from changefeed.domain import tracked_repo_ops
from changefeed.services.ingestion.coordinator import (
    IngestionCoordinator,
    ingestion_coordinator,
)

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Summary of a sweep run (for logging/monitoring)."""

    repos_selected: int = 0
    repos_indexed: int = 0
    repos_skipped: int = 0
    repos_failed: int = 0
    updates_created: int = 0
    releases_created: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class RepositorySweeper:
    """Runs ensure_fresh across repositories with subscribers."""

    def __init__(
        self,
        coordinator: IngestionCoordinator | None = None,
        session_maker: Any = None,
    ):
        self.coordinator = coordinator or ingestion_coordinator
        self.session_maker = session_maker or async_session_maker

    async def run(
        self,
        max_repos: int | None = None,
        concurrency: int | None = None,
    ) -> SweepReport:
        """
        Main entry point for the scheduled job.

        1. Select up to max_repos repositories with subscribers, most-followed first
        2. Ensure each is fresh, with bounded concurrency
        3. Return a report of what was indexed/skipped/failed
        """
        start = time.monotonic()
        report = SweepReport()
        max_repos = max_repos or settings.sweep_max_repos
        semaphore = asyncio.Semaphore(concurrency or settings.sweep_concurrency)

        async with self.session_maker() as db:
            repos = await tracked_repo_ops.get_for_sweep(db, max_repos)
            targets = [(repo.id, repo.full_name) for repo in repos]

        report.repos_selected = len(targets)
        logger.info(f"[sweep] Selected {len(targets)} repositories")

        async def sweep_with_limit(repository_id: uuid_pkg.UUID, full_name: str) -> None:
            async with semaphore:
                await self._sweep_one(repository_id, full_name, report)

        try:
            async with asyncio.timeout(settings.sweep_timeout_seconds):
                await asyncio.gather(*(sweep_with_limit(rid, name) for rid, name in targets))
        except TimeoutError:
            error_msg = f"Total sweep timeout ({settings.sweep_timeout_seconds}s) exceeded"
            logger.error(f"[sweep] {error_msg}")
            report.errors.append(error_msg)

        report.duration_seconds = round(time.monotonic() - start, 2)
        logger.info(
            f"[sweep] Completed: {report.repos_indexed} indexed, "
            f"{report.repos_skipped} skipped, {report.repos_failed} failed, "
            f"{report.updates_created} updates created "
            f"({report.duration_seconds}s)"
        )
        return report

    async def _sweep_one(
        self,
        repository_id: uuid_pkg.UUID,
        full_name: str,
        report: SweepReport,
    ) -> None:
        try:
            async with self.session_maker() as db:
                repo = await tracked_repo_ops.get(db, repository_id)
                if repo is None:
                    report.repos_skipped += 1
                    return

                result = await self.coordinator.ensure_fresh(db, repo)
                if result is None:
                    report.repos_skipped += 1
                    return

                report.repos_indexed += 1
                report.updates_created += len(result.updates_created)
                report.releases_created += result.releases_created
        except Exception as e:
            error_msg = f"{full_name}: {e}"
            logger.error(f"[sweep] {error_msg}")
            report.repos_failed += 1
            report.errors.append(error_msg)


async def backfill_subscriber_counts(counts: dict[uuid_pkg.UUID, int]) -> int:
    """Apply externally computed subscriber counts. Returns rows changed."""
    async with async_session_maker() as db:
        changed = await tracked_repo_ops.backfill_subscriber_counts(db, counts)
        await db.commit()
    logger.info(f"[sweep] Subscriber backfill: {changed} repositories updated")
    return changed


repository_sweeper = RepositorySweeper()
