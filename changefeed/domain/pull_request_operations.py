"""Domain operations for ingested pull requests."""

import uuid as uuid_pkg
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.models.pull_request import PullRequest
from changefeed.services.github.types import PullRequestData


class PullRequestOperations:
    """Operations for write-once pull request rows."""

    def __init__(self) -> None:
        self.model = PullRequest

    async def get_existing_numbers(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        numbers: Iterable[int] | None = None,
    ) -> set[int]:
        """
        PR numbers already persisted for a repository.

        Args:
            db: Database session
            repository_id: TrackedRepository UUID
            numbers: Optional candidate numbers to restrict the lookup to

        Returns:
            Set of PR numbers that already belong to an Update
        """
        statement = select(PullRequest.number).where(
            PullRequest.repository_id == repository_id  # type: ignore[arg-type]
        )
        if numbers is not None:
            candidates = list(numbers)
            if not candidates:
                return set()
            statement = statement.where(PullRequest.number.in_(candidates))  # type: ignore[attr-defined]

        result = await db.execute(statement)
        return set(result.scalars().all())

    async def get_oldest_merged_at(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
    ) -> datetime | None:
        """Merge time of the oldest known PR, or None if the repository has none."""
        statement = select(func.min(PullRequest.merged_at)).where(
            PullRequest.repository_id == repository_id  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar()

    async def insert_for_update(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        update_id: uuid_pkg.UUID,
        prs: list[PullRequestData],
    ) -> int:
        """
        Attach PRs to an Update.

        Uses INSERT ... ON CONFLICT (repository_id, number) DO NOTHING so a
        PR that another run already persisted keeps its original Update.

        Returns:
            Number of rows actually inserted
        """
        if not prs:
            return 0

        rows = [
            {
                "id": uuid_pkg.uuid4(),
                "repository_id": repository_id,
                "update_id": update_id,
                "number": pr.number,
                "title": pr.title,
                "body": pr.body,
                "url": pr.url,
                "author": pr.author,
                "merged_at": pr.merged_at,
                "labels": pr.labels,
                "commits": [c.to_dict() for c in pr.commits],
            }
            for pr in prs
        ]
        stmt = (
            insert(self.model)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["repository_id", "number"])
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def get_by_updates(
        self,
        db: AsyncSession,
        update_ids: list[uuid_pkg.UUID],
    ) -> list[PullRequest]:
        """PRs belonging to the given Updates, newest merge first."""
        if not update_ids:
            return []

        statement = (
            select(PullRequest)
            .where(PullRequest.update_id.in_(update_ids))  # type: ignore[attr-defined]
            .order_by(PullRequest.merged_at.desc())  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


pull_request_ops = PullRequestOperations()
