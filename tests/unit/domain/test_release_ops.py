"""Unit tests for ReleaseOperations — all DB calls mocked."""

import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.dialects import postgresql

from changefeed.domain.release_operations import ReleaseOperations

from tests.helpers.mock_factories import (
    make_mock_release,
    mock_rowcount_result,
    mock_scalars_result,
)


class TestExistingTags:
    def setup_method(self):
        self.ops = ReleaseOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_returns_known_tags(self):
        self.db.execute = AsyncMock(return_value=mock_scalars_result(["v1.0.0"]))

        result = await self.ops.get_existing_tags(self.db, uuid.uuid4(), ["v1.0.0", "v1.1.0"])
        assert result == {"v1.0.0"}

    @pytest.mark.asyncio
    async def test_no_tags_skip_query(self):
        assert await self.ops.get_existing_tags(self.db, uuid.uuid4(), []) == set()
        self.db.execute.assert_not_awaited()


class TestInsertMany:
    def setup_method(self):
        self.ops = ReleaseOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_skips_existing_tags(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(1))

        inserted = await self.ops.insert_many(
            self.db,
            uuid.uuid4(),
            [{"tag_name": "v1.0.0", "title": "v1.0.0", "url": "u", "is_cluster_head": True}],
        )

        assert inserted == 1
        sql = str(self.db.execute.call_args.args[0].compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (repository_id, tag_name) DO NOTHING" in sql

    @pytest.mark.asyncio
    async def test_empty_rows_is_noop(self):
        assert await self.ops.insert_many(self.db, uuid.uuid4(), []) == 0
        self.db.execute.assert_not_awaited()


class TestVisibleReleases:
    def setup_method(self):
        self.ops = ReleaseOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_hides_cluster_siblings(self):
        releases = [make_mock_release()]
        self.db.execute = AsyncMock(return_value=mock_scalars_result(releases))

        result = await self.ops.get_visible(self.db, uuid.uuid4())

        assert result == releases
        sql = str(self.db.execute.call_args.args[0].compile(dialect=postgresql.dialect()))
        assert "releases.cluster_id IS NULL" in sql
        assert "releases.is_cluster_head IS true" in sql
