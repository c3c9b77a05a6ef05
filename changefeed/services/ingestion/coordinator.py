"""Freshness state machine and the entry point for every ingestion trigger.

A repository is fresh while its last_fetched_at is within the staleness
threshold. Any trigger that finds it stale claims it by stamping
last_fetched_at (committed before the first network call), so concurrent
triggers see it as fresh and back off. Completion stamps again, success or
failure. The dedup hash, not this stamp, is what keeps data correct.
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.config import settings
from changefeed.domain import pull_request_ops, tracked_repo_ops
from changefeed.models.tracked_repository import TrackedRepository
from changefeed.models.update import Update
from changefeed.services.github import clear_github_caches
from changefeed.services.ingestion.pipeline import IngestionPipeline, IngestResult

logger = logging.getLogger(__name__)


class FreshnessState(str, Enum):
    """Where a repository sits in the freshness cycle."""

    FRESH = "fresh"
    STALE = "stale"
    INDEXING = "indexing"


@dataclass
class LoadOlderResult:
    """Outcome of one backward-pagination step."""

    new_updates: list[Update] = field(default_factory=list)
    total_prs_fetched: int = 0
    new_prs_processed: int = 0
    last_activity_at: datetime | None = None


class IngestionCoordinator:
    """Decides when to ingest and runs the pipeline around freshness stamps."""

    def __init__(self, pipeline: IngestionPipeline | None = None):
        self._pipeline = pipeline
        # Repositories with an ingestion in flight in this process
        self._in_flight: set[uuid_pkg.UUID] = set()

    @property
    def pipeline(self) -> IngestionPipeline:
        if self._pipeline is None:
            self._pipeline = IngestionPipeline()
        return self._pipeline

    @property
    def staleness_threshold(self) -> timedelta:
        return timedelta(minutes=settings.staleness_threshold_minutes)

    def default_since(self, now: datetime | None = None) -> datetime:
        """Start of the initial lookback window."""
        return (now or datetime.now(UTC)) - timedelta(days=settings.initial_lookback_days)

    def is_stale(self, repo: TrackedRepository, now: datetime | None = None) -> bool:
        if repo.last_fetched_at is None:
            return True
        now = now or datetime.now(UTC)
        return now - repo.last_fetched_at > self.staleness_threshold

    def state_of(self, repo: TrackedRepository, now: datetime | None = None) -> FreshnessState:
        if repo.id in self._in_flight:
            return FreshnessState.INDEXING
        return FreshnessState.STALE if self.is_stale(repo, now) else FreshnessState.FRESH

    async def track_repository(
        self,
        db: AsyncSession,
        owner: str,
        name: str,
        since: datetime | None = None,
    ) -> TrackedRepository:
        """
        Start tracking a repository (or return the existing row) and make it fresh.

        Args:
            owner: GitHub owner
            name: GitHub repository name
            since: Optional start of the first ingest window (default: lookback)

        Raises:
            GitHubAPIError: If the repository can't be read from GitHub
        """
        repo = await tracked_repo_ops.get_by_owner_name(db, owner, name)
        if repo is None:
            info = await self.pipeline.github.get_repo_info(owner, name)
            repo = await tracked_repo_ops.create_from_info(db, info)
            await db.commit()
            logger.info(f"[ingest] Tracking {repo.full_name}")

        await self.ensure_fresh(db, repo, since=since)
        return repo

    async def ensure_fresh(
        self,
        db: AsyncSession,
        repo: TrackedRepository,
        since: datetime | None = None,
    ) -> IngestResult | None:
        """
        Ingest new activity if the repository is stale.

        Returns:
            The ingest result, or None if the repository was fresh or
            another trigger already claimed it
        """
        if repo.id in self._in_flight:
            return None

        now = datetime.now(UTC)
        if not self.is_stale(repo, now):
            return None

        window_start = since or repo.last_fetched_at or self.default_since(now)

        claimed = await tracked_repo_ops.claim_stale(
            db, repo.id, stale_before=now - self.staleness_threshold, at=now
        )
        await db.commit()
        if not claimed:
            logger.debug(f"[ingest] {repo.full_name}: already claimed by another trigger")
            await db.refresh(repo)
            return None

        return await self._run(db, repo, window_start)

    async def force_refresh(self, db: AsyncSession, repo: TrackedRepository) -> IngestResult:
        """
        Destructive rebuild: drop all PRs, Updates and Releases, then re-ingest
        the lookback window.

        The purge is one transaction; if it fails nothing is deleted.
        """
        full_name = repo.full_name
        try:
            deleted = await tracked_repo_ops.purge_activity(db, repo.id)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception(f"[ingest] {full_name}: refresh purge failed, rolled back")
            raise

        logger.info(
            f"[ingest] {full_name}: purged {deleted.get('updates', 0)} updates, "
            f"{deleted.get('pull_requests', 0)} PRs, {deleted.get('releases', 0)} releases"
        )
        clear_github_caches()
        repo.last_fetched_at = None

        now = datetime.now(UTC)
        await tracked_repo_ops.stamp_fetched(db, repo.id, now)
        await db.commit()
        return await self._run(db, repo, self.default_since(now))

    async def load_older(
        self,
        db: AsyncSession,
        repo: TrackedRepository,
        limit: int | None = None,
    ) -> LoadOlderResult:
        """
        Backward pagination: ingest up to `limit` PRs merged before the oldest
        known PR (or before now when none is stored).
        """
        limit = limit or settings.older_batch_size
        pipeline = self.pipeline
        # rollback expires repo; failure paths only touch these
        repository_id, full_name = repo.id, repo.full_name

        self._in_flight.add(repository_id)
        try:
            info = await pipeline.refresh_metadata(db, repo)
            before = await pull_request_ops.get_oldest_merged_at(db, repository_id)
            prs = await pipeline.github.get_older_merged_prs(
                repo.owner, repo.name, before or datetime.now(UTC), limit
            )
            result = await pipeline.ingest_prs(db, repository_id, info, prs)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception(f"[ingest] {full_name}: load-older failed")
            raise
        finally:
            self._in_flight.discard(repository_id)
            await self._stamp_completion(db, repo, repository_id, full_name)

        logger.info(
            f"[ingest] {full_name}: load-older fetched {len(prs)} PRs, "
            f"{len(result.updates_created)} new updates"
        )
        return LoadOlderResult(
            new_updates=result.updates_created,
            total_prs_fetched=len(prs),
            new_prs_processed=result.new_prs,
            last_activity_at=info.pushed_at,
        )

    async def _run(
        self,
        db: AsyncSession,
        repo: TrackedRepository,
        since: datetime,
    ) -> IngestResult:
        """Run the pipeline for a claimed repository, then stamp completion."""
        # rollback expires repo; failure paths only touch these
        repository_id, full_name = repo.id, repo.full_name

        self._in_flight.add(repository_id)
        try:
            result = await self.pipeline.index_repository(db, repo, since)
            await db.commit()
            return result
        except Exception:
            await db.rollback()
            logger.exception(f"[ingest] {full_name}: ingestion failed")
            raise
        finally:
            self._in_flight.discard(repository_id)
            await self._stamp_completion(db, repo, repository_id, full_name)

    async def _stamp_completion(
        self,
        db: AsyncSession,
        repo: TrackedRepository,
        repository_id: uuid_pkg.UUID,
        full_name: str,
    ) -> None:
        """
        Advance last_fetched_at to now and reload repo.

        Failures are logged, never masking the original error. Runs after a
        possible rollback, so it must not read attributes off repo.
        """
        try:
            await tracked_repo_ops.stamp_fetched(db, repository_id)
            await db.commit()
            await db.refresh(repo)
        except Exception:
            await db.rollback()
            logger.exception(f"[ingest] {full_name}: failed to stamp last_fetched_at")


ingestion_coordinator = IngestionCoordinator()
