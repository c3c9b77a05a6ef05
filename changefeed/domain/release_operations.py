"""Domain operations for releases."""

import uuid as uuid_pkg
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from changefeed.models.release import Release


class ReleaseOperations:
    """Operations for write-once release rows."""

    def __init__(self) -> None:
        self.model = Release

    async def get_existing_tags(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        tags: list[str],
    ) -> set[str]:
        """Tags among `tags` already persisted for the repository."""
        if not tags:
            return set()

        statement = select(Release.tag_name).where(
            Release.repository_id == repository_id,  # type: ignore[arg-type]
            Release.tag_name.in_(tags),  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return set(result.scalars().all())

    async def insert_many(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        rows: list[dict[str, Any]],
    ) -> int:
        """
        Insert release rows, skipping tags that already exist.

        Args:
            db: Database session
            repository_id: TrackedRepository UUID
            rows: Column values per release (tag_name, url, published_at, ...)

        Returns:
            Number of rows actually inserted
        """
        if not rows:
            return 0

        values = [
            {"id": uuid_pkg.uuid4(), "repository_id": repository_id, **row} for row in rows
        ]
        stmt = (
            insert(self.model)
            .values(values)
            .on_conflict_do_nothing(index_elements=["repository_id", "tag_name"])
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def get_visible(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        limit: int = 20,
    ) -> list[Release]:
        """
        Releases shown in a feed: standalone releases plus cluster heads.

        Cluster siblings are hidden behind their head.
        """
        statement = (
            select(Release)
            .where(
                Release.repository_id == repository_id,  # type: ignore[arg-type]
                or_(
                    Release.cluster_id.is_(None),  # type: ignore[union-attr]
                    Release.is_cluster_head.is_(True),  # type: ignore[attr-defined]
                ),
            )
            .order_by(Release.published_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


release_ops = ReleaseOperations()
