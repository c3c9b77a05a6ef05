"""Domain operations for tracked repositories and their freshness stamp."""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.models.pull_request import PullRequest
from changefeed.models.release import Release
from changefeed.models.tracked_repository import TrackedRepository
from changefeed.models.update import Update
from changefeed.services.github.types import RepoInfo


class TrackedRepositoryOperations:
    """
    Operations for tracked repositories.

    Note: This doesn't extend a generic CRUD base because repositories are
    shared (not user-scoped) and identified by owner/name.
    """

    def __init__(self) -> None:
        self.model = TrackedRepository

    async def get(self, db: AsyncSession, id: uuid_pkg.UUID) -> TrackedRepository | None:
        """Get a tracked repository by ID."""
        statement = select(TrackedRepository).where(
            TrackedRepository.id == id  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_owner_name(
        self,
        db: AsyncSession,
        owner: str,
        name: str,
    ) -> TrackedRepository | None:
        """Get a tracked repository by owner/name (case-insensitive)."""
        statement = select(TrackedRepository).where(
            func.lower(TrackedRepository.owner) == owner.lower(),
            func.lower(TrackedRepository.name) == name.lower(),
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def create_from_info(self, db: AsyncSession, info: RepoInfo) -> TrackedRepository:
        """
        Insert a tracked repository from GitHub metadata.

        Uses INSERT ... ON CONFLICT DO NOTHING so two concurrent "add"
        requests for the same repository resolve to a single row.

        Returns:
            The new row, or the existing one if another request won the race
        """
        now = datetime.now(UTC)
        stmt = (
            insert(self.model)
            .values(
                id=uuid_pkg.uuid4(),
                owner=info.owner,
                name=info.name,
                url=info.url,
                description=info.description,
                avatar_url=info.avatar_url,
                default_branch=info.default_branch,
                star_count=info.star_count,
                pushed_at=info.pushed_at,
                subscriber_count=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["owner", "name"])
            .returning(TrackedRepository)
        )
        result = await db.execute(stmt)
        created = result.scalar_one_or_none()
        await db.flush()
        if created is not None:
            return created

        existing = await self.get_by_owner_name(db, info.owner, info.name)
        assert existing is not None
        return existing

    async def update_metadata(
        self,
        db: AsyncSession,
        repo: TrackedRepository,
        info: RepoInfo,
    ) -> TrackedRepository:
        """Refresh GitHub metadata (description, stars, last push) on an existing row."""
        repo.description = info.description
        repo.avatar_url = info.avatar_url
        repo.default_branch = info.default_branch
        repo.star_count = info.star_count
        repo.pushed_at = info.pushed_at
        repo.updated_at = datetime.now(UTC)
        db.add(repo)
        await db.flush()
        return repo

    async def stamp_fetched(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        at: datetime | None = None,
    ) -> bool:
        """
        Advance last_fetched_at to `at` (default: now).

        The stamp never moves backwards: the UPDATE only matches when the
        stored value is null or older than `at`.

        Returns:
            True if the stamp was advanced
        """
        at = at or datetime.now(UTC)
        stmt = (
            update(TrackedRepository)
            .where(
                TrackedRepository.id == repository_id,  # type: ignore[arg-type]
                or_(
                    TrackedRepository.last_fetched_at.is_(None),  # type: ignore[union-attr]
                    TrackedRepository.last_fetched_at < at,  # type: ignore[operator]
                ),
            )
            .values(last_fetched_at=at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def claim_stale(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        stale_before: datetime,
        at: datetime | None = None,
    ) -> bool:
        """
        Stamp last_fetched_at only if the repository is still stale.

        Compare-and-set on the freshness stamp: of several triggers racing
        on the same stale repository, exactly one UPDATE matches.

        Args:
            stale_before: A stamp older than this counts as stale
            at: New stamp value (default: now)

        Returns:
            True if this caller claimed the repository for indexing
        """
        at = at or datetime.now(UTC)
        stmt = (
            update(TrackedRepository)
            .where(
                TrackedRepository.id == repository_id,  # type: ignore[arg-type]
                or_(
                    TrackedRepository.last_fetched_at.is_(None),  # type: ignore[union-attr]
                    TrackedRepository.last_fetched_at < stale_before,  # type: ignore[operator]
                ),
            )
            .values(last_fetched_at=at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.flush()
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def purge_activity(self, db: AsyncSession, repository_id: uuid_pkg.UUID) -> dict[str, int]:
        """
        Delete every PullRequest, Update and Release of a repository and
        reset its freshness stamp to null.

        Runs inside the caller's transaction; the caller commits or rolls back.
        PRs go first since they reference their Update.

        Returns:
            Rows deleted per table
        """
        deleted: dict[str, int] = {}
        for label, model in (
            ("pull_requests", PullRequest),
            ("updates", Update),
            ("releases", Release),
        ):
            stmt = delete(model).where(model.repository_id == repository_id)  # type: ignore[attr-defined]
            result = await db.execute(stmt)
            deleted[label] = result.rowcount  # type: ignore[attr-defined]

        await db.execute(
            update(TrackedRepository)
            .where(TrackedRepository.id == repository_id)  # type: ignore[arg-type]
            .values(last_fetched_at=None)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return deleted

    async def get_for_sweep(self, db: AsyncSession, limit: int) -> list[TrackedRepository]:
        """Repositories with at least one subscriber, most-followed first."""
        statement = (
            select(TrackedRepository)
            .where(TrackedRepository.subscriber_count > 0)  # type: ignore[operator]
            .order_by(TrackedRepository.subscriber_count.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def backfill_subscriber_counts(
        self,
        db: AsyncSession,
        counts: dict[uuid_pkg.UUID, int],
    ) -> int:
        """
        Overwrite subscriber_count from an externally computed mapping.

        Repositories missing from the mapping are left untouched.

        Returns:
            Number of repositories whose count changed
        """
        changed = 0
        for repository_id, count in counts.items():
            stmt = (
                update(TrackedRepository)
                .where(
                    TrackedRepository.id == repository_id,  # type: ignore[arg-type]
                    TrackedRepository.subscriber_count != count,  # type: ignore[arg-type]
                )
                .values(subscriber_count=count)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(stmt)
            changed += result.rowcount  # type: ignore[attr-defined]
        await db.flush()
        return changed


tracked_repo_ops = TrackedRepositoryOperations()
