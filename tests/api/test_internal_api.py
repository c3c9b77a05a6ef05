"""Internal (cron) API endpoint tests."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from changefeed.config import settings

SECRET = "test-cron-secret"


@pytest.fixture(autouse=True)
def cron_secret():
    with patch.object(settings, "cron_secret", SECRET):
        yield


@pytest.mark.asyncio
async def test_sweep_requires_header(api_client: AsyncClient):
    resp = await api_client.post("/api/v1/internal/sweep")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_sweep_rejects_wrong_secret(api_client: AsyncClient):
    resp = await api_client.post("/api/v1/internal/sweep", headers={"X-Cron-Secret": "nope"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_sweep_unconfigured_secret(api_client: AsyncClient):
    with patch.object(settings, "cron_secret", ""):
        resp = await api_client.post("/api/v1/internal/sweep", headers={"X-Cron-Secret": "x"})
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_sweep_completed(api_client: AsyncClient):
    with patch(
        "changefeed.services.scheduler.scheduler.trigger_now",
        AsyncMock(return_value={"repos_indexed": 2}),
    ):
        resp = await api_client.post("/api/v1/internal/sweep", headers={"X-Cron-Secret": SECRET})

    assert resp.status_code == 200
    assert resp.json() == {"status": "completed", "repos_indexed": 2}


@pytest.mark.asyncio
async def test_sweep_skipped_when_locked(api_client: AsyncClient):
    with patch(
        "changefeed.services.scheduler.scheduler.trigger_now",
        AsyncMock(return_value=None),
    ):
        resp = await api_client.post("/api/v1/internal/sweep", headers={"X-Cron-Secret": SECRET})

    assert resp.json() == {"status": "skipped"}


@pytest.mark.asyncio
async def test_subscriber_counts(api_client: AsyncClient):
    repository_id = uuid.uuid4()
    backfill = AsyncMock(return_value=1)

    with patch("changefeed.services.ingestion.backfill_subscriber_counts", backfill):
        resp = await api_client.post(
            "/api/v1/internal/subscriber-counts",
            json={"counts": {str(repository_id): 4}},
            headers={"X-Cron-Secret": SECRET},
        )

    assert resp.status_code == 200
    assert resp.json() == {"updated": 1}
    backfill.assert_awaited_once_with({repository_id: 4})
