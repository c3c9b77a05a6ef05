"""Claude-backed classification: PR grouping, summaries and release clustering."""

from changefeed.services.classifier.base import (
    ClassificationError,
    StructuredClassifier,
    get_classifier,
)
from changefeed.services.classifier.grouping import GroupingEngine, grouping_engine
from changefeed.services.classifier.releases import (
    ProcessedRelease,
    ReleaseProcessor,
    classify_release_type,
    cluster_releases,
    extract_base_version,
    release_processor,
)
from changefeed.services.classifier.summarizer import (
    SummarizationEngine,
    fallback_summary,
    summarization_engine,
)
from changefeed.services.classifier.types import GroupSummary, PRGroup, group_key

__all__ = [
    "ClassificationError",
    "GroupSummary",
    "GroupingEngine",
    "PRGroup",
    "ProcessedRelease",
    "ReleaseProcessor",
    "StructuredClassifier",
    "SummarizationEngine",
    "classify_release_type",
    "cluster_releases",
    "extract_base_version",
    "fallback_summary",
    "get_classifier",
    "group_key",
    "grouping_engine",
    "release_processor",
    "summarization_engine",
]
