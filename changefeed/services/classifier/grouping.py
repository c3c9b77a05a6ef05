"""Semantic grouping of merged PRs.

Batches up to the small-batch threshold go straight to detailed grouping.
Larger batches are first sorted into coarse themes on lightweight briefs
(phase 1), then each multi-PR theme gets detailed grouping in parallel
(phase 2). Whatever Claude returns, every input PR ends up in exactly one
group.
"""

import asyncio
import logging
from collections.abc import Iterable

from changefeed.config import settings
from changefeed.services.classifier.base import (
    ClassificationError,
    StructuredClassifier,
    get_classifier,
)
from changefeed.services.classifier.prompts import (
    GROUPING_SYSTEM_PROMPT,
    GROUPING_TOOL,
    THEME_SYSTEM_PROMPT,
    THEME_TOOL,
    build_grouping_prompt,
    build_theme_prompt,
)
from changefeed.services.classifier.types import (
    GroupingOutput,
    PRGroup,
    Theme,
    ThemeClusteringOutput,
)
from changefeed.services.github.types import PullRequestData, RepoInfo

logger = logging.getLogger(__name__)

SINGLE_PR_REASON = "Single PR"
UNGROUPED_REASON = "Not grouped with others"
FALLBACK_REASON = "Fallback: individual classification"
MISC_THEME = "Miscellaneous"
FALLBACK_THEME = "All changes"


def normalize_groups(
    groups: Iterable[PRGroup],
    pr_numbers: list[int],
    leftover_reason: str = UNGROUPED_REASON,
) -> list[PRGroup]:
    """
    Enforce exact coverage of `pr_numbers`.

    Unknown numbers are dropped, a PR claimed by several groups stays in
    the first one, empty groups disappear and every PR nobody claimed is
    appended as its own group.
    """
    known = set(pr_numbers)
    placed: set[int] = set()
    result: list[PRGroup] = []

    for group in groups:
        members: list[int] = []
        for number in group.pr_numbers:
            if number in known and number not in placed:
                members.append(number)
                placed.add(number)
        if members:
            result.append(PRGroup(pr_numbers=members, reason=group.reason))

    for number in pr_numbers:
        if number not in placed:
            result.append(PRGroup(pr_numbers=[number], reason=leftover_reason))
            placed.add(number)

    return result


def fallback_groups(prs: list[PullRequestData]) -> list[PRGroup]:
    """One group per PR."""
    return [PRGroup(pr_numbers=[pr.number], reason=FALLBACK_REASON) for pr in prs]


class GroupingEngine:
    """Partitions a batch of new PRs into semantic groups."""

    def __init__(
        self,
        classifier: StructuredClassifier | None = None,
        theme_concurrency: int | None = None,
        small_batch_threshold: int | None = None,
    ):
        self._classifier = classifier
        self.theme_concurrency = theme_concurrency or settings.theme_concurrency
        self.small_batch_threshold = small_batch_threshold or settings.small_batch_threshold

    @property
    def classifier(self) -> StructuredClassifier:
        return self._classifier or get_classifier()

    async def group(self, prs: list[PullRequestData], repo: RepoInfo) -> list[PRGroup]:
        """
        Group PRs by semantic change.

        Never raises because of a classification failure; falls back to
        one theme (phase 1) or one group per PR (phase 2 / small batch).
        """
        if not prs:
            return []
        if len(prs) == 1:
            return [PRGroup(pr_numbers=[prs[0].number], reason=SINGLE_PR_REASON)]

        numbers = [pr.number for pr in prs]

        if len(prs) <= self.small_batch_threshold:
            groups = await self._group_detailed(prs, repo)
        else:
            themes = await self._cluster_themes(prs, repo)
            logger.info(
                f"[grouping] {repo.owner}/{repo.name}: {len(prs)} PRs in {len(themes)} themes"
            )
            groups = await self._group_themes(themes, repo)

        result = normalize_groups(groups, numbers)
        logger.info(
            f"[grouping] {repo.owner}/{repo.name}: {len(prs)} PRs -> {len(result)} groups"
        )
        return result

    async def _cluster_themes(self, prs: list[PullRequestData], repo: RepoInfo) -> list[Theme]:
        """Phase 1: sort PRs into coarse themes. Unplaced PRs go to Miscellaneous."""
        try:
            output = await self.classifier.classify(
                system=THEME_SYSTEM_PROMPT,
                prompt=build_theme_prompt(prs, repo),
                tool=THEME_TOOL,
                output_type=ThemeClusteringOutput,
                operation_name="Theme clustering",
            )
        except ClassificationError as e:
            logger.warning(f"[grouping] Theme clustering fell back to one theme: {e}")
            return [Theme(name=FALLBACK_THEME, prs=list(prs))]

        by_number = {pr.number: pr for pr in prs}
        placed: set[int] = set()
        themes: list[Theme] = []

        for theme_output in output.themes:
            members = []
            for number in theme_output.pr_numbers:
                if number in by_number and number not in placed:
                    members.append(by_number[number])
                    placed.add(number)
            if members:
                themes.append(Theme(name=theme_output.name, prs=members))

        leftovers = [pr for pr in prs if pr.number not in placed]
        if leftovers:
            themes.append(Theme(name=MISC_THEME, prs=leftovers))

        return themes

    async def _group_themes(self, themes: list[Theme], repo: RepoInfo) -> list[PRGroup]:
        """Phase 2: detailed grouping per theme, bounded concurrency, merged in theme order."""
        semaphore = asyncio.Semaphore(self.theme_concurrency)

        async def group_with_limit(theme: Theme) -> list[PRGroup]:
            if len(theme.prs) == 1:
                return [PRGroup(pr_numbers=[theme.prs[0].number], reason=SINGLE_PR_REASON)]
            async with semaphore:
                return await self._group_detailed(theme.prs, repo)

        per_theme = await asyncio.gather(*(group_with_limit(t) for t in themes))
        return [group for groups in per_theme for group in groups]

    async def _group_detailed(self, prs: list[PullRequestData], repo: RepoInfo) -> list[PRGroup]:
        """Fine-grained grouping of one batch. PRs left out become standalone groups."""
        try:
            output = await self.classifier.classify(
                system=GROUPING_SYSTEM_PROMPT,
                prompt=build_grouping_prompt(prs, repo),
                tool=GROUPING_TOOL,
                output_type=GroupingOutput,
                operation_name="PR grouping",
            )
        except ClassificationError as e:
            logger.warning(f"[grouping] Detailed grouping fell back to singletons: {e}")
            return fallback_groups(prs)

        groups = [PRGroup(pr_numbers=g.pr_numbers, reason=g.reason) for g in output.groups]
        return normalize_groups(groups, [pr.number for pr in prs])


grouping_engine = GroupingEngine()
