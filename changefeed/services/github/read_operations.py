"""
GitHub API read operations.

Provides the read-only calls ingestion needs:
- Repository metadata
- Merged pull requests (since a time, most recent N, N older than a time)
- Commits per pull request
- Releases
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from changefeed.config import settings
from changefeed.services.github.cache import cached_github_call, repo_info_cache
from changefeed.services.github.exceptions import GitHubAPIError
from changefeed.services.github.helpers import (
    handle_error_response,
    has_next_page,
    parse_timestamp,
)
from changefeed.services.github.http_client import get_github_client
from changefeed.services.github.types import (
    CommitData,
    PullRequestData,
    ReleaseData,
    RepoInfo,
)

logger = logging.getLogger(__name__)

# Safety caps on pagination (100 PRs per page)
MAX_PR_PAGES = 10
RELEASES_PER_PAGE = 50


class GitHubReadOperations:
    """
    Read-only operations for GitHub API.

    Uses the shared HTTP client, which carries the base URL and API
    headers; only the token is added per request.
    """

    def __init__(self, token: str):
        self.token = token
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    async def _get(
        self,
        path: str,
        repo_name: str,
        params: dict[str, str | int] | None = None,
    ) -> httpx.Response:
        """GET a repository-scoped endpoint and raise on any non-200 response."""
        client = get_github_client()
        try:
            response = await client.get(
                path,
                headers=self._headers,
                params=params,
            )
        except httpx.TimeoutException as e:
            raise GitHubAPIError(f"GitHub API timeout for {repo_name}: {e}") from e
        except httpx.HTTPError as e:
            raise GitHubAPIError(f"GitHub API request failed for {repo_name}: {e}") from e

        handle_error_response(response, repo_name)
        return response

    @cached_github_call(repo_info_cache)
    async def get_repo_info(self, owner: str, name: str) -> RepoInfo:
        """
        Fetch repository metadata.

        Results are cached for 10 minutes; stars and pushed_at drift slowly.

        Args:
            owner: Repository owner (username or org)
            name: Repository name

        Returns:
            RepoInfo with the canonical owner/name casing from GitHub
        """
        response = await self._get(f"/repos/{owner}/{name}", f"{owner}/{name}")
        data = response.json()
        owner_data = data.get("owner") or {}

        return RepoInfo(
            owner=owner_data.get("login", owner),
            name=data.get("name", name),
            description=data.get("description"),
            url=data.get("html_url", f"https://github.com/{owner}/{name}"),
            avatar_url=owner_data.get("avatar_url"),
            default_branch=data.get("default_branch", "main"),
            star_count=data.get("stargazers_count", 0),
            pushed_at=parse_timestamp(data.get("pushed_at")),
        )

    async def get_pr_commits(self, owner: str, name: str, number: int) -> list[CommitData]:
        """
        Fetch the commits of a pull request (first 100).

        A failure here degrades to an empty list rather than failing the
        whole ingestion; commits only enrich prompts and counts.
        """
        try:
            response = await self._get(
                f"/repos/{owner}/{name}/pulls/{number}/commits",
                f"{owner}/{name}",
                params={"per_page": 100},
            )
        except GitHubAPIError as e:
            logger.warning(f"Failed to fetch commits for {owner}/{name}#{number}: {e}")
            return []

        return [
            CommitData(
                sha=c["sha"],
                message=(c.get("commit") or {}).get("message", ""),
                url=c.get("html_url", ""),
            )
            for c in response.json()
        ]

    async def _scan_merged_prs(
        self,
        owner: str,
        name: str,
        *,
        sort: str,
        include: Callable[[datetime], bool],
        stop_after: Callable[[list[dict[str, Any]]], bool],
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Page through closed PRs (newest first by `sort`) collecting merged ones.

        Args:
            include: Predicate on merged_at deciding whether a PR is kept
            stop_after: Called with each page; True stops pagination
            limit: Stop once this many PRs have been collected

        Returns:
            Raw PR payloads, in listing order
        """
        collected: list[dict[str, Any]] = []

        for page in range(1, MAX_PR_PAGES + 1):
            response = await self._get(
                f"/repos/{owner}/{name}/pulls",
                f"{owner}/{name}",
                params={
                    "state": "closed",
                    "sort": sort,
                    "direction": "desc",
                    "per_page": 100,
                    "page": page,
                },
            )
            items: list[dict[str, Any]] = response.json()

            for pr in items:
                merged_at = parse_timestamp(pr.get("merged_at"))
                if merged_at is None or not include(merged_at):
                    continue
                collected.append(pr)
                if limit is not None and len(collected) >= limit:
                    return collected

            if not items or stop_after(items) or not has_next_page(response):
                break
        else:
            logger.warning(
                f"Stopped paging PRs for {owner}/{name} after {MAX_PR_PAGES} pages"
            )

        return collected

    async def _hydrate(
        self,
        owner: str,
        name: str,
        raw_prs: list[dict[str, Any]],
    ) -> list[PullRequestData]:
        """Fetch commits for each PR (parallel) and normalize, newest merge first."""
        semaphore = asyncio.Semaphore(settings.github_commit_concurrency)

        async def fetch_with_limit(pr: dict[str, Any]) -> list[CommitData]:
            async with semaphore:
                return await self.get_pr_commits(owner, name, pr["number"])

        commit_lists = await asyncio.gather(*(fetch_with_limit(pr) for pr in raw_prs))

        prs = [
            PullRequestData(
                number=pr["number"],
                title=pr.get("title") or "",
                body=pr.get("body"),
                url=pr.get("html_url", ""),
                merged_at=parse_timestamp(pr["merged_at"]),  # type: ignore[arg-type]
                author=(pr.get("user") or {}).get("login", "ghost"),
                labels=[label["name"] for label in pr.get("labels") or [] if label.get("name")],
                commits=commits,
            )
            for pr, commits in zip(raw_prs, commit_lists, strict=True)
        ]
        prs.sort(key=lambda p: p.merged_at, reverse=True)
        return prs

    async def get_merged_prs(
        self,
        owner: str,
        name: str,
        since: datetime,
    ) -> list[PullRequestData]:
        """
        Fetch PRs merged at or after `since`, with commits, newest first.

        PRs are listed by last update, so a page whose oldest entry was
        updated before `since` cannot contain later merges and ends the scan.
        """

        def page_is_older(items: list[dict[str, Any]]) -> bool:
            oldest = parse_timestamp(items[-1].get("updated_at"))
            return oldest is not None and oldest < since

        raw = await self._scan_merged_prs(
            owner,
            name,
            sort="updated",
            include=lambda merged_at: merged_at >= since,
            stop_after=page_is_older,
        )
        return await self._hydrate(owner, name, raw)

    async def get_recent_merged_prs(
        self,
        owner: str,
        name: str,
        limit: int,
    ) -> list[PullRequestData]:
        """Fetch the `limit` most recently merged PRs, with commits."""
        raw = await self._scan_merged_prs(
            owner,
            name,
            sort="updated",
            include=lambda _merged_at: True,
            stop_after=lambda _items: False,
            limit=limit,
        )
        return await self._hydrate(owner, name, raw)

    async def get_older_merged_prs(
        self,
        owner: str,
        name: str,
        before: datetime,
        limit: int,
    ) -> list[PullRequestData]:
        """Fetch up to `limit` PRs merged strictly before `before`, with commits."""
        raw = await self._scan_merged_prs(
            owner,
            name,
            sort="created",
            include=lambda merged_at: merged_at < before,
            stop_after=lambda _items: False,
            limit=limit,
        )
        return await self._hydrate(owner, name, raw)

    async def get_releases(
        self,
        owner: str,
        name: str,
        since: datetime | None = None,
    ) -> list[ReleaseData]:
        """
        Fetch published releases (latest page), optionally only those
        published at or after `since`. Drafts are skipped.
        """
        response = await self._get(
            f"/repos/{owner}/{name}/releases",
            f"{owner}/{name}",
            params={"per_page": RELEASES_PER_PAGE},
        )

        releases: list[ReleaseData] = []
        for item in response.json():
            if item.get("draft"):
                continue
            published_at = parse_timestamp(item.get("published_at"))
            if published_at is None or (since is not None and published_at < since):
                continue
            releases.append(
                ReleaseData(
                    tag_name=item["tag_name"],
                    name=item.get("name") or None,
                    body=item.get("body"),
                    url=item.get("html_url", ""),
                    published_at=published_at,
                )
            )
        return releases
