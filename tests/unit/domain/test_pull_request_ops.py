"""Unit tests for PullRequestOperations — all DB calls mocked."""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.dialects import postgresql

from changefeed.domain.pull_request_operations import PullRequestOperations

from tests.helpers.mock_factories import (
    make_pr,
    mock_rowcount_result,
    mock_scalar_result,
    mock_scalars_result,
)


class TestExistingNumbers:
    def setup_method(self):
        self.ops = PullRequestOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_returns_set_of_numbers(self):
        self.db.execute = AsyncMock(return_value=mock_scalars_result([3, 5]))

        result = await self.ops.get_existing_numbers(self.db, uuid.uuid4(), [3, 4, 5])
        assert result == {3, 5}

    @pytest.mark.asyncio
    async def test_empty_candidates_skip_query(self):
        result = await self.ops.get_existing_numbers(self.db, uuid.uuid4(), [])

        assert result == set()
        self.db.execute.assert_not_awaited()


class TestOldestMergedAt:
    def setup_method(self):
        self.ops = PullRequestOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_returns_min(self):
        oldest = datetime(2025, 12, 1, tzinfo=UTC)
        self.db.execute = AsyncMock(return_value=mock_scalar_result(oldest))

        assert await self.ops.get_oldest_merged_at(self.db, uuid.uuid4()) == oldest

    @pytest.mark.asyncio
    async def test_none_when_no_prs(self):
        self.db.execute = AsyncMock(return_value=mock_scalar_result(None))

        assert await self.ops.get_oldest_merged_at(self.db, uuid.uuid4()) is None


class TestInsertForUpdate:
    """Tests for attaching PRs to an Update."""

    def setup_method(self):
        self.ops = PullRequestOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_inserts_with_conflict_guard(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(2))

        inserted = await self.ops.insert_for_update(
            self.db, uuid.uuid4(), uuid.uuid4(), [make_pr(1), make_pr(2)]
        )

        assert inserted == 2
        stmt = self.db.execute.call_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (repository_id, number) DO NOTHING" in sql

    @pytest.mark.asyncio
    async def test_reports_zero_when_all_conflict(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(0))

        inserted = await self.ops.insert_for_update(
            self.db, uuid.uuid4(), uuid.uuid4(), [make_pr(1)]
        )
        assert inserted == 0

    @pytest.mark.asyncio
    async def test_no_prs_is_noop(self):
        assert await self.ops.insert_for_update(self.db, uuid.uuid4(), uuid.uuid4(), []) == 0
        self.db.execute.assert_not_awaited()


class TestGetByUpdates:
    def setup_method(self):
        self.ops = PullRequestOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_empty_ids_skip_query(self):
        assert await self.ops.get_by_updates(self.db, []) == []
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_rows(self):
        rows = ["pr-a", "pr-b"]
        self.db.execute = AsyncMock(return_value=mock_scalars_result(rows))

        assert await self.ops.get_by_updates(self.db, [uuid.uuid4()]) == rows
