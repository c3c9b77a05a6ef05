"""Ingestion pipeline: fetch -> filter -> group -> summarize -> persist.

All writes go through the caller's session; committing is left to the
coordinator so freshness stamps and data land consistently.
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.config import settings
from changefeed.domain import pull_request_ops, release_ops, tracked_repo_ops, update_ops
from changefeed.models.tracked_repository import TrackedRepository
from changefeed.models.update import Update
from changefeed.services.classifier import (
    GroupingEngine,
    GroupSummary,
    PRGroup,
    ReleaseProcessor,
    SummarizationEngine,
    grouping_engine,
    release_processor,
    summarization_engine,
)
from changefeed.services.github import (
    GitHubAPIError,
    GitHubReadOperations,
    PullRequestData,
    ReleaseData,
    RepoInfo,
)
from changefeed.services.ingestion.dedup import filter_unseen, group_hash

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """What one ingestion pass fetched and created."""

    prs_fetched: int = 0
    new_prs: int = 0
    groups: int = 0
    updates_created: list[Update] = field(default_factory=list)
    releases_fetched: int = 0
    releases_created: int = 0


class IngestionPipeline:
    """Turns change-source activity into deduplicated Updates and Releases."""

    def __init__(
        self,
        github: GitHubReadOperations | None = None,
        grouping: GroupingEngine | None = None,
        summarizer: SummarizationEngine | None = None,
        releases: ReleaseProcessor | None = None,
    ):
        self.github = github or GitHubReadOperations(settings.github_token)
        self.grouping = grouping or grouping_engine
        self.summarizer = summarizer or summarization_engine
        self.releases = releases or release_processor

    async def refresh_metadata(self, db: AsyncSession, repo: TrackedRepository) -> RepoInfo:
        """Pull repository metadata from GitHub and store it on the row."""
        info = await self.github.get_repo_info(repo.owner, repo.name)
        await tracked_repo_ops.update_metadata(db, repo, info)
        return info

    async def index_repository(
        self,
        db: AsyncSession,
        repo: TrackedRepository,
        since: datetime,
    ) -> IngestResult:
        """
        Ingest everything merged or published since `since`.

        PR failures propagate (the attempt failed). Release failures are
        logged and skipped so PR ingestion still lands.
        """
        info = await self.refresh_metadata(db, repo)
        prs = await self.github.get_merged_prs(repo.owner, repo.name, since)
        result = await self.ingest_prs(db, repo.id, info, prs)

        try:
            releases = await self.github.get_releases(repo.owner, repo.name, since)
        except GitHubAPIError as e:
            logger.warning(f"[ingest] {repo.full_name}: skipping releases: {e}")
            releases = []

        result.releases_fetched = len(releases)
        result.releases_created = await self.ingest_releases(db, repo.id, info, releases)

        logger.info(
            f"[ingest] {repo.full_name}: {result.prs_fetched} PRs fetched, "
            f"{result.new_prs} new, {len(result.updates_created)} updates created, "
            f"{result.releases_created} releases created"
        )
        return result

    async def ingest_prs(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        info: RepoInfo,
        prs: list[PullRequestData],
    ) -> IngestResult:
        """Filter out known PRs, then group, summarize and persist the rest."""
        result = IngestResult(prs_fetched=len(prs))
        if not prs:
            return result

        seen = await pull_request_ops.get_existing_numbers(
            db, repository_id, [pr.number for pr in prs]
        )
        new_prs = filter_unseen(prs, seen)
        result.new_prs = len(new_prs)
        if not new_prs:
            return result

        groups = await self.grouping.group(new_prs, info)
        summaries = await self.summarizer.summarize_all(groups, new_prs, info)
        result.groups = len(groups)
        result.updates_created = await self.persist_groups(
            db, repository_id, groups, summaries, new_prs
        )
        return result

    async def persist_groups(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        groups: list[PRGroup],
        summaries: dict[str, GroupSummary],
        prs: list[PullRequestData],
    ) -> list[Update]:
        """
        Create-if-absent one Update per group and attach its PRs.

        Returns:
            Only the Updates this call created
        """
        by_number = {pr.number: pr for pr in prs}
        created_updates: list[Update] = []

        for group in groups:
            members = [by_number[n] for n in group.pr_numbers if n in by_number]
            summary = summaries.get(group.key)
            if not members or summary is None:
                logger.warning(
                    f"[ingest] Skipping group {group.key}: "
                    f"{'no summary' if members else 'no known PRs'}"
                )
                continue

            update, created = await update_ops.create_if_absent(
                db,
                repository_id=repository_id,
                group_hash=group_hash(group.pr_numbers),
                title=summary.title,
                summary=summary.summary,
                category=summary.category.value,
                significance=summary.significance.value,
                date=max(pr.merged_at for pr in members),
                pr_count=len(members),
                commit_count=sum(len(pr.commits) for pr in members),
            )
            inserted = await pull_request_ops.insert_for_update(
                db, repository_id, update.id, members
            )

            if created and inserted == 0:
                # Every PR was claimed by a concurrent run under another Update
                logger.info(f"[ingest] Dropping empty update for group {group.key}")
                await update_ops.delete(db, update.id)
                continue
            if created and inserted < len(members):
                # Counts, date and hash still cover PRs another run attached elsewhere
                logger.warning(
                    f"[ingest] Update for group {group.key} owns {inserted} of "
                    f"{len(members)} PRs; the rest belong to a concurrent run"
                )
            if created:
                created_updates.append(update)

        return created_updates

    async def ingest_releases(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        info: RepoInfo,
        releases: list[ReleaseData],
    ) -> int:
        """Cluster, summarize and insert releases not stored yet."""
        if not releases:
            return 0

        existing = await release_ops.get_existing_tags(
            db, repository_id, [r.tag_name for r in releases]
        )
        new_releases = [r for r in releases if r.tag_name not in existing]
        if not new_releases:
            return 0

        processed = await self.releases.process(new_releases, info)
        return await release_ops.insert_many(db, repository_id, [p.to_row() for p in processed])
