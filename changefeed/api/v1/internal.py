"""Internal API endpoints — protected by shared secret, not user auth.

These endpoints are called by cron jobs / external schedulers and by the
subscription service that owns follow/unfollow bookkeeping. They validate
a shared secret via the X-Cron-Secret header.
"""

import logging
import uuid as uuid_pkg
from typing import Any

from fastapi import APIRouter, Header, HTTPException, status
from pydantic import BaseModel

from changefeed.config.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


class SubscriberCounts(BaseModel):
    """Current subscriber count per tracked repository."""

    counts: dict[uuid_pkg.UUID, int]


def _verify_cron_secret(x_cron_secret: str = Header(...)) -> None:
    """Validate the X-Cron-Secret header against the configured secret."""
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid cron secret",
        )


@router.post("/sweep")
async def trigger_sweep(
    x_cron_secret: str = Header(...),
) -> dict[str, Any]:
    """
    Run the repository sweep now.

    Protected by X-Cron-Secret header. Shares the scheduler's advisory lock,
    so a sweep already running elsewhere makes this a no-op.
    """
    _verify_cron_secret(x_cron_secret)

    from changefeed.services.scheduler import scheduler

    report = await scheduler.trigger_now("repo_sweep")
    if report is None:
        return {"status": "skipped"}
    return {"status": "completed", **report}


@router.post("/subscriber-counts")
async def update_subscriber_counts(
    data: SubscriberCounts,
    x_cron_secret: str = Header(...),
) -> dict[str, Any]:
    """Overwrite subscriber counts used to prioritize the sweep."""
    _verify_cron_secret(x_cron_secret)

    from changefeed.services.ingestion import backfill_subscriber_counts

    changed = await backfill_subscriber_counts(data.counts)
    return {"updated": changed}
