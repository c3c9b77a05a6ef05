"""Maintenance script — merge duplicate Updates within a repository.

Finds Updates in the same repository with the same title (typically left
by data written before group hashes existed), keeps the oldest, moves the
other Updates' PRs onto it and deletes the rest. The kept Update's hash,
counts and date are recomputed from its new PR set.

Usage:
    python -m scripts.cleanup_duplicate_updates            # dry run
    python -m scripts.cleanup_duplicate_updates --execute  # apply
"""

from __future__ import annotations

import asyncio
import logging
import sys
import uuid
from dataclasses import dataclass, field

from sqlalchemy import delete, select, update

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


@dataclass
class DuplicateSet:
    keep: object
    remove: list = field(default_factory=list)


def find_duplicate_sets(updates: list) -> list[DuplicateSet]:
    """
    Group Updates by (repository_id, title); every group with more than one
    member is a duplicate set whose oldest Update is kept.
    """
    buckets: dict[tuple[uuid.UUID, str], list] = {}
    for u in sorted(updates, key=lambda u: u.created_at):
        buckets.setdefault((u.repository_id, u.title.strip()), []).append(u)

    return [
        DuplicateSet(keep=members[0], remove=members[1:])
        for members in buckets.values()
        if len(members) > 1
    ]


async def cleanup_duplicates() -> None:
    """Report (and with --execute, merge) duplicate Updates."""
    from changefeed.core.database import direct_engine, direct_session_maker
    from changefeed.models.pull_request import PullRequest
    from changefeed.models.update import Update
    from changefeed.services.ingestion.dedup import group_hash

    async with direct_session_maker() as db:
        result = await db.execute(select(Update))
        duplicate_sets = find_duplicate_sets(list(result.scalars().all()))

        if not duplicate_sets:
            logger.info("No duplicates found.")
            await direct_engine.dispose()
            return

        logger.info(f"Found {len(duplicate_sets)} duplicate sets:")
        for dup in duplicate_sets:
            logger.info(f"  {dup.keep.repository_id}: {dup.keep.title!r}")
            logger.info(f"    keeping  {dup.keep.id} (created {dup.keep.created_at.isoformat()})")
            for r in dup.remove:
                logger.info(f"    removing {r.id} (created {r.created_at.isoformat()})")

        remove_count = sum(len(d.remove) for d in duplicate_sets)
        if "--execute" not in sys.argv:
            logger.info(f"{remove_count} updates would be removed. Run with --execute to apply.")
            await direct_engine.dispose()
            return

        for dup in duplicate_sets:
            remove_ids = [r.id for r in dup.remove]
            await db.execute(
                update(PullRequest)
                .where(PullRequest.update_id.in_(remove_ids))  # type: ignore[attr-defined]
                .values(update_id=dup.keep.id)
            )
            await db.execute(delete(Update).where(Update.id.in_(remove_ids)))  # type: ignore[attr-defined]

            pr_result = await db.execute(
                select(PullRequest).where(PullRequest.update_id == dup.keep.id)  # type: ignore[arg-type]
            )
            prs = list(pr_result.scalars().all())
            if prs:
                dup.keep.group_hash = group_hash(pr.number for pr in prs)
                dup.keep.pr_count = len(prs)
                dup.keep.commit_count = sum(len(pr.commits) for pr in prs)
                dup.keep.date = max(pr.merged_at for pr in prs)
                db.add(dup.keep)

        await db.commit()
        logger.info(f"Deleted {remove_count} duplicate updates.")

    await direct_engine.dispose()


if __name__ == "__main__":
    asyncio.run(cleanup_duplicates())
