"""Prompts and tool schemas for the classification calls."""

from typing import Any

from changefeed.models.update import UpdateCategory, UpdateSignificance
from changefeed.services.github.types import PullRequestData, ReleaseData, RepoInfo

BODY_PREVIEW_GROUPING = 400
BODY_PREVIEW_SUMMARY = 500
RELEASE_BODY_LIMIT = 4000
CLUSTER_RELEASE_BODY_LIMIT = 1000
MAX_COMMITS_IN_PROMPT = 5

CATEGORY_VALUES = [c.value for c in UpdateCategory]
SIGNIFICANCE_VALUES = [s.value for s in UpdateSignificance]
CATEGORY_CHOICES = ", ".join(f'"{c}"' for c in CATEGORY_VALUES)

# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

THEME_SYSTEM_PROMPT = (
    "You are an expert at triaging GitHub pull requests. Sort PRs into broad "
    "themes (areas of the product or kinds of work) so each theme can be "
    "analyzed in detail separately."
)

GROUPING_SYSTEM_PROMPT = (
    "You are an expert at analyzing GitHub PRs and identifying semantic "
    "relationships between them. Group related PRs together."
)

SUMMARY_SYSTEM_PROMPT = (
    "You are a technical writer creating concise, user-focused summaries of "
    "code changes. Focus on what users can do, not implementation details."
)

RELEASE_SYSTEM_PROMPT = "You are a technical writer summarizing release notes concisely."

CLUSTER_SYSTEM_PROMPT = "You are a technical writer creating concise release summaries."

# ---------------------------------------------------------------------------
# Tool schemas
# ---------------------------------------------------------------------------

THEME_TOOL: dict[str, Any] = {
    "name": "save_themes",
    "description": "Save the themes the PRs were sorted into.",
    "input_schema": {
        "type": "object",
        "properties": {
            "themes": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Short theme name"},
                        "pr_numbers": {"type": "array", "items": {"type": "integer"}},
                    },
                    "required": ["name", "pr_numbers"],
                },
            }
        },
        "required": ["themes"],
    },
}

GROUPING_TOOL: dict[str, Any] = {
    "name": "save_groups",
    "description": "Save the semantic groups of PRs.",
    "input_schema": {
        "type": "object",
        "properties": {
            "groups": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "pr_numbers": {"type": "array", "items": {"type": "integer"}},
                        "reason": {
                            "type": "string",
                            "description": "Why these PRs belong together",
                        },
                    },
                    "required": ["pr_numbers", "reason"],
                },
            }
        },
        "required": ["groups"],
    },
}

SUMMARY_TOOL: dict[str, Any] = {
    "name": "save_summary",
    "description": "Save the summary of a change.",
    "input_schema": {
        "type": "object",
        "properties": {
            "title": {"type": "string"},
            "summary": {"type": "string"},
            "category": {"type": "string", "enum": CATEGORY_VALUES},
            "significance": {"type": "string", "enum": SIGNIFICANCE_VALUES},
        },
        "required": ["title", "summary", "category", "significance"],
    },
}

RELEASE_SUMMARY_TOOL: dict[str, Any] = {
    "name": "save_release_summary",
    "description": "Save the summary of a release.",
    "input_schema": {
        "type": "object",
        "properties": {"summary": {"type": "string"}},
        "required": ["summary"],
    },
}

CLUSTER_SUMMARY_TOOL: dict[str, Any] = {
    "name": "save_cluster_summary",
    "description": "Save the unified summary of related releases.",
    "input_schema": {
        "type": "object",
        "properties": {
            "title": {"type": "string"},
            "summary": {"type": "string"},
            "significance": {"type": "string", "enum": SIGNIFICANCE_VALUES},
        },
        "required": ["title", "summary", "significance"],
    },
}

# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------


def _repo_line(repo: RepoInfo) -> str:
    return f"Repository: {repo.description}" if repo.description else ""


def _commit_headlines(pr: PullRequestData) -> str:
    return "; ".join(c.headline for c in pr.commits[:MAX_COMMITS_IN_PROMPT])


def build_theme_prompt(prs: list[PullRequestData], repo: RepoInfo) -> str:
    """Phase 1 prompt: number, title and labels only."""
    briefs = "\n".join(
        f"#{pr.number} {pr.title} [labels: {', '.join(pr.labels) or 'none'}]" for pr in prs
    )
    return f"""You are triaging {len(prs)} recent PRs from {repo.owner}/{repo.name}.
{_repo_line(repo)}

Sort these PRs into a handful of broad THEMES (for example a product area,
"Dependency updates", "CI and tooling", "Documentation").

PRs:
{briefs}

Use the `save_themes` tool. Every PR number should appear in exactly one theme."""


def build_grouping_prompt(prs: list[PullRequestData], repo: RepoInfo) -> str:
    """Detailed grouping prompt with bodies and commit headlines."""
    descriptions = "\n---\n".join(
        f"""[PR #{pr.number}] {pr.title}
Merged: {pr.merged_at.isoformat()}
Author: {pr.author or 'unknown'}
Labels: {', '.join(pr.labels) or 'none'}
Description: {(pr.body or 'No description')[:BODY_PREVIEW_GROUPING]}
Commits: {_commit_headlines(pr) or 'none'}"""
        for pr in prs
    )

    return f"""You are analyzing {len(prs)} recent PRs from {repo.owner}/{repo.name}.
{_repo_line(repo)}

Your task: Group these PRs by SEMANTIC CHANGE - what capability or fix they represent together.

Guidelines:
- PRs implementing the same feature across multiple steps -> ONE group
- A feature PR + its test PR + its docs PR -> ONE group
- A bug fix + its follow-up fixes -> ONE group
- Unrelated PRs -> SEPARATE groups (each in their own group)
- Dependency bumps from the same tool (dependabot) -> can be grouped as "Dependency updates"
- Internal refactors with no user impact -> can be grouped as "Internal improvements"

PRs to analyze:
{descriptions}

Use the `save_groups` tool. Each group has pr_numbers and a brief reason
(e.g. "Same feature: authentication", "Related bug fixes").

IMPORTANT: Every PR must appear in exactly one group. If a PR is unrelated to others, put it in its own group."""


def build_summary_prompt(prs: list[PullRequestData], repo: RepoInfo) -> str:
    """Summary prompt for one group; multiple PRs are summarized as one change."""
    multiple = len(prs) > 1

    def describe(pr: PullRequestData) -> str:
        commits = "\n".join(
            f"- {c.sha[:7]}: {c.headline}" for c in pr.commits[:MAX_COMMITS_IN_PROMPT]
        )
        return f"""[PR #{pr.number}] {pr.title}
Description: {(pr.body or 'No description')[:BODY_PREVIEW_SUMMARY]}
Commits:
{commits or '- No commits'}"""

    descriptions = "\n\n---\n\n".join(describe(pr) for pr in prs)
    multi_note = (
        f"\nThese {len(prs)} PRs are RELATED and should be summarized as ONE cohesive change."
        if multiple
        else ""
    )

    return f"""Summarize {'these related PRs' if multiple else 'this PR'} from {repo.owner}/{repo.name}.
{_repo_line(repo)}
{multi_note}

{descriptions}

Use the `save_summary` tool with:
- title: A clear, plain English title (5-10 words) describing the main change
- summary: 2-4 SHORT bullet points (each starting with "- "). Keep each bullet under 15 words. Focus on what users can do, not implementation details.
- category: one of {CATEGORY_CHOICES}
- significance: one of "major" (new capabilities, breaking changes), "minor" (enhancements), "patch" (bug fixes), "internal" (refactors, tests only)

If the changes have no user-facing impact, use category "docs" and significance "internal"."""


def build_release_prompt(release: ReleaseData, repo: RepoInfo) -> str:
    description = f"Description: {repo.description}" if repo.description else ""
    return f"""Summarize this GitHub Release for developers.

Repository: {repo.owner}/{repo.name}
{description}

Release: {release.name or release.tag_name} ({release.tag_name})

Release Notes:
{(release.body or '')[:RELEASE_BODY_LIMIT]}

Use the `save_release_summary` tool. Provide 3-5 SHORT bullet points (each starting with "- ")
describing the key changes. Keep each bullet under 15 words. Focus on what users can do or what changed."""


def build_cluster_prompt(
    releases: list[ReleaseData],
    release_type: str,
    base_version: str | None,
    repo: RepoInfo,
) -> str:
    bodies = "\n\n---\n\n".join(
        f"{r.tag_name}:\n{(r.body or 'No notes')[:CLUSTER_RELEASE_BODY_LIMIT]}" for r in releases
    )
    return f"""Summarize these {len(releases)} related releases from {repo.owner}/{repo.name}.

These are all {release_type} releases for version {base_version or 'unknown'}.

Release Notes:
{bodies}

Use the `save_cluster_summary` tool to create ONE unified summary covering the most important changes across all releases.
- title: e.g., "v0.23.x preview releases" or "v1.2.x patch updates"
- summary: 3-5 bullet points covering key changes (each starting with "- ", under 15 words)
- significance: "major", "minor", "patch", or "internal"
"""
