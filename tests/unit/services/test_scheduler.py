"""Unit tests for the in-process scheduler and its advisory lock."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from changefeed.config import settings
from changefeed.services.ingestion.sweep import SweepReport
from changefeed.services.scheduler import (
    REPO_SWEEP_LOCK_ID,
    Scheduler,
    advisory_lock,
    run_repo_sweep,
)

from tests.helpers.mock_factories import mock_scalar_result

SCHEDULER = "changefeed.services.scheduler"


def _lock(acquired: bool):
    @asynccontextmanager
    async def fake_lock(lock_id: int):
        yield acquired

    return fake_lock


class TestAdvisoryLock:
    @pytest.mark.asyncio
    async def test_lock_held_elsewhere_yields_false(self):
        session = AsyncMock()
        session.execute = AsyncMock(return_value=mock_scalar_result(False))

        @asynccontextmanager
        async def maker():
            yield session

        with patch(f"{SCHEDULER}.direct_session_maker", maker):
            async with advisory_lock(REPO_SWEEP_LOCK_ID) as acquired:
                assert acquired is False

        # try-lock only; nothing to unlock
        assert session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_acquired_lock_is_released(self):
        session = AsyncMock()
        session.execute = AsyncMock(return_value=mock_scalar_result(True))

        @asynccontextmanager
        async def maker():
            yield session

        with patch(f"{SCHEDULER}.direct_session_maker", maker):
            async with advisory_lock(REPO_SWEEP_LOCK_ID) as acquired:
                assert acquired is True

        assert session.execute.await_count == 2
        unlock_sql = str(session.execute.call_args_list[1].args[0])
        assert "pg_advisory_unlock" in unlock_sql
        session.commit.assert_awaited_once()


class TestRunRepoSweep:
    @pytest.mark.asyncio
    async def test_skipped_when_lock_held(self):
        sweeper = MagicMock()
        sweeper.run = AsyncMock()

        with patch(f"{SCHEDULER}.advisory_lock", _lock(False)), patch(
            "changefeed.services.ingestion.sweep.repository_sweeper", sweeper
        ):
            result = await run_repo_sweep()

        assert result is None
        sweeper.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_report_dict(self):
        sweeper = MagicMock()
        sweeper.run = AsyncMock(return_value=SweepReport(repos_selected=2, repos_indexed=2))

        with patch(f"{SCHEDULER}.advisory_lock", _lock(True)), patch(
            "changefeed.services.ingestion.sweep.repository_sweeper", sweeper
        ):
            result = await run_repo_sweep()

        assert result is not None
        assert result["repos_indexed"] == 2
        assert result["errors"] == []

    @pytest.mark.asyncio
    async def test_sweep_crash_is_contained(self):
        sweeper = MagicMock()
        sweeper.run = AsyncMock(side_effect=RuntimeError("db down"))

        with patch(f"{SCHEDULER}.advisory_lock", _lock(True)), patch(
            "changefeed.services.ingestion.sweep.repository_sweeper", sweeper
        ):
            assert await run_repo_sweep() is None


class TestScheduler:
    def test_disabled_scheduler_does_not_start(self):
        scheduler = Scheduler()

        with patch.object(settings, "scheduler_enabled", False):
            scheduler.start()

        assert scheduler._scheduler is None

    @pytest.mark.asyncio
    async def test_trigger_unknown_job(self):
        assert await Scheduler().trigger_now("nope") is None

    @pytest.mark.asyncio
    async def test_trigger_repo_sweep(self):
        with patch(f"{SCHEDULER}.run_repo_sweep", AsyncMock(return_value={"repos_indexed": 1})):
            result = await Scheduler().trigger_now("repo_sweep")

        assert result == {"repos_indexed": 1}
