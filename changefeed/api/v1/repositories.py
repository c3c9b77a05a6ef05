"""Tracked repository endpoints: add, feed, refresh and load-older.

These are thin triggers over the ingestion coordinator; all freshness
and dedup decisions live there.
"""

import logging
import uuid as uuid_pkg

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.core.database import get_db
from changefeed.core.exceptions import NotFoundError, UpstreamError, ValidationError
from changefeed.domain import pull_request_ops, release_ops, tracked_repo_ops, update_ops
from changefeed.models.release import Release
from changefeed.models.tracked_repository import TrackedRepository, TrackedRepositoryCreate
from changefeed.models.update import Update
from changefeed.services.github import GitHubAPIError, parse_repo_url
from changefeed.services.ingestion import ingestion_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repositories", tags=["repositories"])


def _serialize_repository(r: TrackedRepository) -> dict:
    return {
        "id": str(r.id),
        "owner": r.owner,
        "name": r.name,
        "url": r.url,
        "description": r.description,
        "avatar_url": r.avatar_url,
        "default_branch": r.default_branch,
        "star_count": r.star_count,
        "subscriber_count": r.subscriber_count,
        "pushed_at": r.pushed_at.isoformat() if r.pushed_at else None,
        "last_fetched_at": r.last_fetched_at.isoformat() if r.last_fetched_at else None,
        "state": ingestion_coordinator.state_of(r).value,
    }


def _serialize_update(u: Update, prs: list) -> dict:
    return {
        "id": str(u.id),
        "title": u.title,
        "summary": u.summary,
        "category": u.category,
        "significance": u.significance,
        "date": u.date.isoformat(),
        "pr_count": u.pr_count,
        "commit_count": u.commit_count,
        "pull_requests": [
            {"number": pr.number, "title": pr.title, "url": pr.url, "author": pr.author}
            for pr in prs
        ],
    }


def _serialize_release(r: Release) -> dict:
    return {
        "id": str(r.id),
        "tag_name": r.tag_name,
        "title": r.title,
        "url": r.url,
        "published_at": r.published_at.isoformat(),
        "summary": r.summary,
        "release_type": r.release_type,
        "base_version": r.base_version,
        "cluster_id": r.cluster_id,
    }


async def _serialize_updates(db: AsyncSession, updates: list[Update]) -> list[dict]:
    prs = await pull_request_ops.get_by_updates(db, [u.id for u in updates])
    by_update: dict[uuid_pkg.UUID, list] = {}
    for pr in prs:
        by_update.setdefault(pr.update_id, []).append(pr)
    return [_serialize_update(u, by_update.get(u.id, [])) for u in updates]


async def _get_repo_or_404(db: AsyncSession, repository_id: uuid_pkg.UUID) -> TrackedRepository:
    repo = await tracked_repo_ops.get(db, repository_id)
    if not repo:
        raise NotFoundError("Repository")
    return repo


def _upstream_error(e: GitHubAPIError) -> UpstreamError:
    if e.status_code == 404:
        return UpstreamError(e.message, status_code=404)
    return UpstreamError(e.message)


@router.post("", response_model=dict)
async def track_repository(
    data: TrackedRepositoryCreate,
    db: AsyncSession = Depends(get_db),
):
    """Start tracking a repository by URL or owner/name and ingest its recent activity."""
    try:
        if data.url:
            owner, name = parse_repo_url(data.url)
        elif data.owner and data.name:
            owner, name = data.owner, data.name
        else:
            raise ValidationError("Provide a repository url or owner and name")
    except ValueError as e:
        raise ValidationError(str(e)) from e

    try:
        repo = await ingestion_coordinator.track_repository(db, owner, name, since=data.since)
    except GitHubAPIError as e:
        raise _upstream_error(e) from e

    return _serialize_repository(repo)


@router.get("/{repository_id}", response_model=dict)
async def get_repository(
    repository_id: uuid_pkg.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a tracked repository with its freshness state."""
    repo = await _get_repo_or_404(db, repository_id)
    return _serialize_repository(repo)


@router.get("/{repository_id}/feed", response_model=dict)
async def get_feed(
    repository_id: uuid_pkg.UUID,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """
    Updates and releases for a repository, newest first.

    Viewing a stale repository triggers ingestion first. If GitHub fails
    the stored feed is served as-is.
    """
    repo = await _get_repo_or_404(db, repository_id)
    full_name = repo.full_name

    try:
        await ingestion_coordinator.ensure_fresh(db, repo)
    except GitHubAPIError as e:
        logger.warning(f"Serving stale feed for {full_name}: {e}")
        # The failed ingest rolled back, which expires repo
        await db.refresh(repo)

    updates = await update_ops.get_by_repository(db, repository_id, limit=limit)
    releases = await release_ops.get_visible(db, repository_id)

    return {
        "repository": _serialize_repository(repo),
        "updates": await _serialize_updates(db, updates),
        "releases": [_serialize_release(r) for r in releases],
    }


@router.post("/{repository_id}/refresh", response_model=dict)
async def refresh_repository(
    repository_id: uuid_pkg.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Drop all derived data for the repository and rebuild it from GitHub."""
    repo = await _get_repo_or_404(db, repository_id)

    try:
        result = await ingestion_coordinator.force_refresh(db, repo)
    except GitHubAPIError as e:
        raise _upstream_error(e) from e

    return {
        "repository": _serialize_repository(repo),
        "prs_fetched": result.prs_fetched,
        "updates_created": len(result.updates_created),
        "releases_created": result.releases_created,
    }


@router.post("/{repository_id}/load-older", response_model=dict)
async def load_older(
    repository_id: uuid_pkg.UUID,
    limit: int | None = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Ingest the next batch of PRs merged before the oldest one already stored."""
    repo = await _get_repo_or_404(db, repository_id)

    try:
        result = await ingestion_coordinator.load_older(db, repo, limit=limit)
    except GitHubAPIError as e:
        raise _upstream_error(e) from e

    return {
        "new_updates": await _serialize_updates(db, result.new_updates),
        "total_prs_fetched": result.total_prs_fetched,
        "new_prs_processed": result.new_prs_processed,
        "last_activity_at": (
            result.last_activity_at.isoformat() if result.last_activity_at else None
        ),
    }
