"""Ingestion: dedup, pipeline, freshness coordination and the periodic sweep."""

from changefeed.services.ingestion.coordinator import (
    FreshnessState,
    IngestionCoordinator,
    LoadOlderResult,
    ingestion_coordinator,
)
from changefeed.services.ingestion.dedup import filter_unseen, group_hash
from changefeed.services.ingestion.pipeline import IngestionPipeline, IngestResult
from changefeed.services.ingestion.sweep import (
    RepositorySweeper,
    SweepReport,
    backfill_subscriber_counts,
    repository_sweeper,
)

__all__ = [
    "FreshnessState",
    "IngestResult",
    "IngestionCoordinator",
    "IngestionPipeline",
    "LoadOlderResult",
    "RepositorySweeper",
    "SweepReport",
    "backfill_subscriber_counts",
    "filter_unseen",
    "group_hash",
    "ingestion_coordinator",
    "repository_sweeper",
]
