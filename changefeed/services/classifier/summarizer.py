"""Per-group summarization: title, bullet summary, category, significance."""

import asyncio
import logging

from changefeed.config import settings
from changefeed.models.update import UpdateCategory, UpdateSignificance
from changefeed.services.classifier.base import (
    ClassificationError,
    StructuredClassifier,
    get_classifier,
)
from changefeed.services.classifier.prompts import (
    SUMMARY_SYSTEM_PROMPT,
    SUMMARY_TOOL,
    build_summary_prompt,
)
from changefeed.services.classifier.types import GroupSummary, PRGroup
from changefeed.services.github.types import PullRequestData, RepoInfo

logger = logging.getLogger(__name__)


def fallback_summary(prs: list[PullRequestData]) -> GroupSummary:
    """Deterministic summary used whenever Claude can't produce one."""
    if not prs:
        return GroupSummary(
            title="Unknown changes",
            summary="- No PR data available",
            category=UpdateCategory.DOCS,
            significance=UpdateSignificance.INTERNAL,
        )

    title = prs[0].title if len(prs) == 1 else f"{len(prs)} related changes"
    return GroupSummary(
        title=title or f"PR #{prs[0].number}",
        summary="\n".join(f"- {pr.title}" for pr in prs),
        category=UpdateCategory.ENHANCEMENT,
        significance=UpdateSignificance.MINOR,
    )


class SummarizationEngine:
    """Summarizes PR groups, fanning out with a bounded semaphore."""

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

    async def summarize(self, prs: list[PullRequestData], repo: RepoInfo) -> GroupSummary:
        """Summarize one group; multiple PRs are described as one cohesive change."""
        if not prs:
            return fallback_summary(prs)

        try:
            return await self.classifier.classify(
                system=SUMMARY_SYSTEM_PROMPT,
                prompt=build_summary_prompt(prs, repo),
                tool=SUMMARY_TOOL,
                output_type=GroupSummary,
                operation_name="Group summary",
            )
        except ClassificationError as e:
            numbers = ", ".join(f"#{pr.number}" for pr in prs)
            logger.warning(f"[summarize] Fallback summary for {numbers}: {e}")
            return fallback_summary(prs)

    async def summarize_all(
        self,
        groups: list[PRGroup],
        prs: list[PullRequestData],
        repo: RepoInfo,
    ) -> dict[str, GroupSummary]:
        """
        Summarize every group.

        Returns:
            Mapping of group key (sorted PR numbers joined by "-") to summary
        """
        by_number = {pr.number: pr for pr in prs}
        semaphore = asyncio.Semaphore(self.concurrency)

        async def summarize_with_limit(group: PRGroup) -> tuple[str, GroupSummary]:
            members = [by_number[n] for n in group.pr_numbers if n in by_number]
            async with semaphore:
                return group.key, await self.summarize(members, repo)

        results = await asyncio.gather(*(summarize_with_limit(g) for g in groups))
        return dict(results)


summarization_engine = SummarizationEngine()
