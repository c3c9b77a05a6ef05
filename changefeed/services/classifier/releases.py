"""Release clustering and summarization.

Release type and base version come from tag-name heuristics; releases
sharing base version, type and publish day (UTC) form a cluster that gets a
single summary on its newest member.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC
from typing import Any

from changefeed.config import settings
from changefeed.models.release import ReleaseType
from changefeed.services.classifier.base import (
    ClassificationError,
    StructuredClassifier,
    get_classifier,
)
from changefeed.services.classifier.prompts import (
    CLUSTER_SUMMARY_TOOL,
    CLUSTER_SYSTEM_PROMPT,
    RELEASE_SUMMARY_TOOL,
    RELEASE_SYSTEM_PROMPT,
    build_cluster_prompt,
    build_release_prompt,
)
from changefeed.services.classifier.types import ClusterSummaryOutput, ReleaseSummaryOutput
from changefeed.services.github.types import ReleaseData, RepoInfo

logger = logging.getLogger(__name__)

MIN_RELEASE_BODY_LENGTH = 20

_NIGHTLY = re.compile(r"-nightly|\.nightly\.|nightly\d|canary")
_PREVIEW = re.compile(r"-preview|-alpha|-beta|-rc\.?\d*|\.dev\d*|-dev\.")
_STRICT_SEMVER = re.compile(r"^\d+\.\d+\.\d+$")
_PATCH = re.compile(r"patch|hotfix|\.\d+\.\d+\.\d+")
_BASE_VERSION = re.compile(r"v?(\d+)\.(\d+)")


def classify_release_type(tag_name: str) -> ReleaseType:
    """
    Infer the release channel from a tag.

    Checked in order: nightly, preview, strict X.Y.Z (stable), patch
    markers or four-part versions (patch); anything else is stable.
    """
    normalized = tag_name.lower()

    if _NIGHTLY.search(normalized):
        return ReleaseType.NIGHTLY
    if _PREVIEW.search(normalized):
        return ReleaseType.PREVIEW
    if _STRICT_SEMVER.match(tag_name.removeprefix("v")):
        return ReleaseType.STABLE
    if _PATCH.search(normalized):
        return ReleaseType.PATCH
    return ReleaseType.STABLE


def extract_base_version(tag_name: str) -> str | None:
    """Base version for grouping, e.g. "v0.24.0-nightly.123" -> "0.24.x"."""
    match = _BASE_VERSION.search(tag_name)
    if not match:
        return None
    return f"{match.group(1)}.{match.group(2)}.x"


@dataclass
class ReleaseCluster:
    cluster_id: str
    base_version: str | None
    release_type: ReleaseType
    releases: list[ReleaseData] = field(default_factory=list)


@dataclass
class ProcessedRelease:
    """A release with its classification, cluster membership and summary."""

    release: ReleaseData
    summary: str | None
    release_type: ReleaseType
    base_version: str | None
    cluster_id: str | None
    is_cluster_head: bool

    def to_row(self) -> dict[str, Any]:
        """Column values for release_ops.insert_many."""
        return {
            "tag_name": self.release.tag_name,
            "title": self.release.name or self.release.tag_name,
            "url": self.release.url,
            "body": self.release.body,
            "published_at": self.release.published_at,
            "summary": self.summary,
            "release_type": self.release_type.value,
            "base_version": self.base_version,
            "cluster_id": self.cluster_id,
            "is_cluster_head": self.is_cluster_head,
        }


def cluster_releases(
    releases: list[ReleaseData],
) -> tuple[list[ReleaseCluster], list[ReleaseData]]:
    """
    Group releases by (base version, type, publish day).

    Returns:
        (clusters with 2+ members, standalone releases)
    """
    buckets: dict[str, ReleaseCluster] = {}

    for release in releases:
        release_type = classify_release_type(release.tag_name)
        base_version = extract_base_version(release.tag_name)
        day = release.published_at.astimezone(UTC).date().isoformat()
        key = f"{base_version or 'unknown'}-{release_type.value}-{day}"

        bucket = buckets.setdefault(
            key,
            ReleaseCluster(
                cluster_id=f"cluster-{key}",
                base_version=base_version,
                release_type=release_type,
            ),
        )
        bucket.releases.append(release)

    clusters: list[ReleaseCluster] = []
    standalone: list[ReleaseData] = []
    for bucket in buckets.values():
        if len(bucket.releases) >= 2:
            clusters.append(bucket)
        else:
            standalone.extend(bucket.releases)

    return clusters, standalone


class ReleaseProcessor:
    """Clusters releases and attaches summaries. Summary failures never block persistence."""

    def __init__(
        self,
        classifier: StructuredClassifier | None = None,
        concurrency: int | None = None,
    ):
        self._classifier = classifier
        self.concurrency = concurrency or settings.summary_concurrency

    @property
    def classifier(self) -> StructuredClassifier:
        return self._classifier or get_classifier()

    async def summarize_release(self, release: ReleaseData, repo: RepoInfo) -> str | None:
        """Summary for a standalone release, or None when its notes are too thin."""
        if not release.body or len(release.body.strip()) < MIN_RELEASE_BODY_LENGTH:
            return None

        try:
            output = await self.classifier.classify(
                system=RELEASE_SYSTEM_PROMPT,
                prompt=build_release_prompt(release, repo),
                tool=RELEASE_SUMMARY_TOOL,
                output_type=ReleaseSummaryOutput,
                operation_name="Release summary",
            )
        except ClassificationError as e:
            logger.warning(f"[releases] No summary for {release.tag_name}: {e}")
            return None
        return output.summary

    async def summarize_cluster(
        self,
        cluster: ReleaseCluster,
        repo: RepoInfo,
    ) -> ClusterSummaryOutput | None:
        try:
            return await self.classifier.classify(
                system=CLUSTER_SYSTEM_PROMPT,
                prompt=build_cluster_prompt(
                    cluster.releases, cluster.release_type.value, cluster.base_version, repo
                ),
                tool=CLUSTER_SUMMARY_TOOL,
                output_type=ClusterSummaryOutput,
                operation_name="Release cluster summary",
            )
        except ClassificationError as e:
            logger.warning(f"[releases] No summary for {cluster.cluster_id}: {e}")
            return None

    async def process(self, releases: list[ReleaseData], repo: RepoInfo) -> list[ProcessedRelease]:
        """Cluster, summarize and flag cluster heads for a batch of new releases."""
        if not releases:
            return []

        clusters, standalone = cluster_releases(releases)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def process_cluster(cluster: ReleaseCluster) -> list[ProcessedRelease]:
            async with semaphore:
                cluster_summary = await self.summarize_cluster(cluster, repo)

            ordered = sorted(cluster.releases, key=lambda r: r.published_at, reverse=True)
            return [
                ProcessedRelease(
                    release=release,
                    summary=cluster_summary.summary if cluster_summary and i == 0 else None,
                    release_type=cluster.release_type,
                    base_version=cluster.base_version,
                    cluster_id=cluster.cluster_id,
                    is_cluster_head=i == 0,
                )
                for i, release in enumerate(ordered)
            ]

        async def process_standalone(release: ReleaseData) -> list[ProcessedRelease]:
            async with semaphore:
                summary = await self.summarize_release(release, repo)
            return [
                ProcessedRelease(
                    release=release,
                    summary=summary,
                    release_type=classify_release_type(release.tag_name),
                    base_version=extract_base_version(release.tag_name),
                    cluster_id=None,
                    is_cluster_head=True,
                )
            ]

        batches = await asyncio.gather(
            *(process_cluster(c) for c in clusters),
            *(process_standalone(r) for r in standalone),
        )
        logger.info(
            f"[releases] {repo.owner}/{repo.name}: {len(releases)} releases, "
            f"{len(clusters)} clusters, {len(standalone)} standalone"
        )
        return [item for batch in batches for item in batch]


release_processor = ReleaseProcessor()
