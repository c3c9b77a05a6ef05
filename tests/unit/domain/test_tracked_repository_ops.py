"""Unit tests for TrackedRepositoryOperations — all DB calls mocked."""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from changefeed.domain.tracked_repository_operations import TrackedRepositoryOperations

from tests.helpers.mock_factories import (
    make_mock_tracked_repo,
    make_repo_info,
    mock_rowcount_result,
    mock_scalar_result,
    mock_scalars_result,
)


def _compiled(db: AsyncMock, call_index: int = 0) -> str:
    stmt = db.execute.call_args_list[call_index].args[0]
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestTrackedRepositoryGet:
    """Tests for lookups by ID and by owner/name."""

    def setup_method(self):
        self.ops = TrackedRepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_get_returns_repository(self):
        repo = make_mock_tracked_repo()
        self.db.execute = AsyncMock(return_value=mock_scalar_result(repo))

        result = await self.ops.get(self.db, repo.id)
        assert result == repo

    @pytest.mark.asyncio
    async def test_get_returns_none_when_not_found(self):
        self.db.execute = AsyncMock(return_value=mock_scalar_result(None))

        result = await self.ops.get(self.db, uuid.uuid4())
        assert result is None

    @pytest.mark.asyncio
    async def test_owner_name_lookup_is_case_insensitive(self):
        repo = make_mock_tracked_repo()
        self.db.execute = AsyncMock(return_value=mock_scalar_result(repo))

        result = await self.ops.get_by_owner_name(self.db, "ACME", "Widgets")

        assert result == repo
        sql = _compiled(self.db)
        assert "lower(tracked_repositories.owner)" in sql
        assert "lower(tracked_repositories.name)" in sql


class TestTrackedRepositoryCreate:
    """Tests for race-safe creation from GitHub metadata."""

    def setup_method(self):
        self.ops = TrackedRepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_returns_inserted_row(self):
        repo = make_mock_tracked_repo()
        self.db.execute = AsyncMock(return_value=mock_scalar_result(repo))

        result = await self.ops.create_from_info(self.db, make_repo_info())

        assert result == repo
        assert self.db.execute.await_count == 1
        assert "ON CONFLICT (owner, name) DO NOTHING" in _compiled(self.db)

    @pytest.mark.asyncio
    async def test_returns_existing_row_when_insert_conflicts(self):
        existing = make_mock_tracked_repo()
        self.db.execute = AsyncMock(
            side_effect=[mock_scalar_result(None), mock_scalar_result(existing)]
        )

        result = await self.ops.create_from_info(self.db, make_repo_info())

        assert result == existing
        assert self.db.execute.await_count == 2


class TestTrackedRepositoryMetadata:
    def setup_method(self):
        self.ops = TrackedRepositoryOperations()
        self.db = AsyncMock()
        self.db.add = MagicMock()

    @pytest.mark.asyncio
    async def test_copies_github_fields(self):
        repo = make_mock_tracked_repo(star_count=1)
        pushed = datetime(2026, 2, 1, tzinfo=UTC)
        info = make_repo_info(star_count=900, description="New", pushed_at=pushed)

        result = await self.ops.update_metadata(self.db, repo, info)

        assert result.star_count == 900
        assert result.description == "New"
        assert result.pushed_at == pushed
        self.db.add.assert_called_once_with(repo)
        self.db.flush.assert_awaited_once()


class TestFreshnessStamp:
    """Tests for the monotonic stamp and the compare-and-set claim."""

    def setup_method(self):
        self.ops = TrackedRepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_stamp_reports_advanced(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(1))

        assert await self.ops.stamp_fetched(self.db, uuid.uuid4()) is True

    @pytest.mark.asyncio
    async def test_stamp_never_moves_backwards(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(0))

        advanced = await self.ops.stamp_fetched(
            self.db, uuid.uuid4(), datetime(2020, 1, 1, tzinfo=UTC)
        )

        assert advanced is False
        sql = _compiled(self.db)
        assert "last_fetched_at IS NULL" in sql
        assert "last_fetched_at <" in sql

    @pytest.mark.asyncio
    async def test_claim_succeeds_when_row_matches(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(1))

        claimed = await self.ops.claim_stale(
            self.db, uuid.uuid4(), stale_before=datetime.now(UTC)
        )
        assert claimed is True

    @pytest.mark.asyncio
    async def test_claim_fails_when_another_trigger_won(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(0))

        claimed = await self.ops.claim_stale(
            self.db, uuid.uuid4(), stale_before=datetime.now(UTC)
        )
        assert claimed is False


class TestPurgeActivity:
    def setup_method(self):
        self.ops = TrackedRepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_deletes_children_before_parents_and_resets_stamp(self):
        self.db.execute = AsyncMock(
            side_effect=[
                mock_rowcount_result(7),
                mock_rowcount_result(3),
                mock_rowcount_result(2),
                mock_rowcount_result(1),
            ]
        )

        deleted = await self.ops.purge_activity(self.db, uuid.uuid4())

        assert deleted == {"pull_requests": 7, "updates": 3, "releases": 2}
        assert "DELETE FROM pull_requests" in _compiled(self.db, 0)
        assert "DELETE FROM updates" in _compiled(self.db, 1)
        assert "DELETE FROM releases" in _compiled(self.db, 2)
        assert "UPDATE tracked_repositories" in _compiled(self.db, 3)
        self.db.commit.assert_not_awaited()


class TestSweepSelection:
    def setup_method(self):
        self.ops = TrackedRepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_returns_followed_repositories(self):
        repos = [make_mock_tracked_repo(subscriber_count=n) for n in (9, 4)]
        self.db.execute = AsyncMock(return_value=mock_scalars_result(repos))

        result = await self.ops.get_for_sweep(self.db, limit=10)

        assert result == repos
        sql = _compiled(self.db)
        assert "subscriber_count >" in sql
        assert "ORDER BY tracked_repositories.subscriber_count DESC" in sql

    @pytest.mark.asyncio
    async def test_backfill_counts_changed_rows(self):
        self.db.execute = AsyncMock(
            side_effect=[mock_rowcount_result(1), mock_rowcount_result(0)]
        )

        changed = await self.ops.backfill_subscriber_counts(
            self.db, {uuid.uuid4(): 3, uuid.uuid4(): 0}
        )

        assert changed == 1
        assert self.db.execute.await_count == 2
