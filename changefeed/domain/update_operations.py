"""Domain operations for Updates (grouped, summarized changes)."""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import and_, delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.models.update import Update


class UpdateOperations:
    """
    Operations for Updates.

    Updates are immutable: there is no update path, only
    create-if-absent keyed by (repository_id, group_hash).
    """

    def __init__(self) -> None:
        self.model = Update

    async def get_by_hash(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        group_hash: str,
    ) -> Update | None:
        """Get the Update built from a given PR set, if any."""
        statement = select(Update).where(
            and_(
                Update.repository_id == repository_id,  # type: ignore[arg-type]
                Update.group_hash == group_hash,  # type: ignore[arg-type]
            )
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def create_if_absent(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        group_hash: str,
        title: str,
        summary: str,
        category: str,
        significance: str,
        date: datetime,
        pr_count: int,
        commit_count: int,
    ) -> tuple[Update, bool]:
        """
        Create the Update for a PR set unless one already exists.

        Uses PostgreSQL's INSERT ... ON CONFLICT DO NOTHING; when the insert
        is a no-op the existing row is read back and returned unchanged.

        Returns:
            (update, created) where created is False for an existing row
        """
        stmt = (
            insert(self.model)
            .values(
                id=uuid_pkg.uuid4(),
                repository_id=repository_id,
                group_hash=group_hash,
                title=title,
                summary=summary,
                category=category,
                significance=significance,
                date=date,
                pr_count=pr_count,
                commit_count=commit_count,
                created_at=datetime.now(UTC),
            )
            .on_conflict_do_nothing(index_elements=["repository_id", "group_hash"])
            .returning(Update)
        )
        result = await db.execute(stmt)
        created = result.scalar_one_or_none()
        await db.flush()
        if created is not None:
            return created, True

        existing = await self.get_by_hash(db, repository_id, group_hash)
        assert existing is not None
        return existing, False

    async def delete(self, db: AsyncSession, update_id: uuid_pkg.UUID) -> None:
        """Delete a single Update (only used for rows left without any PR)."""
        stmt = delete(Update).where(Update.id == update_id)  # type: ignore[arg-type]
        await db.execute(stmt)
        await db.flush()

    async def get_by_repository(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[Update]:
        """Updates for a repository, newest first."""
        statement = select(Update).where(
            Update.repository_id == repository_id  # type: ignore[arg-type]
        )
        if before is not None:
            statement = statement.where(Update.date < before)  # type: ignore[operator]
        statement = statement.order_by(Update.date.desc()).limit(limit)  # type: ignore[attr-defined]

        result = await db.execute(statement)
        return list(result.scalars().all())


update_ops = UpdateOperations()
