"""Types crossing the classification boundary.

Pydantic models validate tool-use input from Claude before anything is
persisted; dataclasses carry grouping results between stages.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from changefeed.models.update import UpdateCategory, UpdateSignificance
from changefeed.services.github.types import PullRequestData


def group_key(pr_numbers: Iterable[int]) -> str:
    """Order-independent key for a PR set: numerically sorted numbers joined by "-"."""
    return "-".join(str(n) for n in sorted(pr_numbers))


# ---------------------------------------------------------------------------
# Validated tool outputs
# ---------------------------------------------------------------------------


class ThemeOutput(BaseModel):
    name: str = Field(min_length=1)
    pr_numbers: list[int]


class ThemeClusteringOutput(BaseModel):
    """Phase 1: coarse themes over lightweight PR briefs."""

    themes: list[ThemeOutput]


class GroupOutput(BaseModel):
    pr_numbers: list[int]
    reason: str = ""


class GroupingOutput(BaseModel):
    """Phase 2 (or small batch): fine-grained semantic groups."""

    groups: list[GroupOutput]


class GroupSummary(BaseModel):
    """Title, summary and classification of one group of PRs."""

    title: str = Field(min_length=1, max_length=500)
    summary: str = Field(min_length=1)
    category: UpdateCategory
    significance: UpdateSignificance


class ReleaseSummaryOutput(BaseModel):
    summary: str = Field(min_length=1)


class ClusterSummaryOutput(BaseModel):
    title: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    significance: UpdateSignificance


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------


@dataclass
class PRGroup:
    """PR numbers that together form one semantic change."""

    pr_numbers: list[int]
    reason: str

    @property
    def key(self) -> str:
        return group_key(self.pr_numbers)


@dataclass
class Theme:
    """A coarse bucket of PRs produced by theme clustering."""

    name: str
    prs: list[PullRequestData] = field(default_factory=list)
