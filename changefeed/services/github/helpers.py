"""
GitHub API helper utilities.

Rate limit handling, error response processing, timestamp and URL parsing.
"""

import logging
import re
from datetime import datetime

import httpx

from changefeed.services.github.exceptions import GitHubAPIError, GitHubRepoRenamed

logger = logging.getLogger(__name__)

_REPO_URL_PATTERN = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s#?]+)")
_REPO_SLUG_PATTERN = re.compile(r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)$")


class RateLimitInfo:
    """Rate limit information from GitHub API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining")
        self.reset = response.headers.get("X-RateLimit-Reset")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def parse_redirect_location(location: str) -> tuple[str, str] | None:
    """
    Extract owner/repo from GitHub redirect Location header.

    Args:
        location: Absolute ("https://api.github.com/repos/o/r/...") or
            relative ("/repos/o/r/...") URL

    Returns:
        Tuple of (owner, repo) if parseable, None otherwise
    """
    if not location:
        return None

    match = re.match(r"(?:https://api\.github\.com)?/repos/([^/]+)/([^/]+)", location)
    if match:
        return (match.group(1), match.group(2))
    return None


def parse_repo_url(value: str) -> tuple[str, str]:
    """
    Parse a repository reference into (owner, name).

    Accepts "https://github.com/owner/name", the same with a trailing
    ".git" or path suffix, "git@github.com:owner/name.git" and plain
    "owner/name".

    Raises:
        ValueError: If the value is not a recognizable GitHub repository
    """
    value = value.strip()
    match = _REPO_URL_PATTERN.search(value) or _REPO_SLUG_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid GitHub repository: {value!r}")

    owner, name = match.group(1), match.group(2)
    name = name.removesuffix(".git")
    if not owner or not name:
        raise ValueError(f"Invalid GitHub repository: {value!r}")
    return owner, name


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 GitHub timestamp ("2026-01-15T00:00:00Z")."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def has_next_page(response: httpx.Response) -> bool:
    """Check the Link header for a rel="next" page."""
    return 'rel="next"' in response.headers.get("Link", "")


def handle_error_response(response: httpx.Response, repo_name: str) -> None:
    """
    Handle common error responses from GitHub API.

    Args:
        response: The HTTP response from GitHub API
        repo_name: Repository name for error context (format: "owner/repo")

    Raises:
        GitHubRepoRenamed: If repository was renamed/transferred (301)
        GitHubAPIError: For authentication, authorization, or other API errors
    """
    rate_info = RateLimitInfo(response)

    if response.status_code == 301:
        location = response.headers.get("Location", "")
        logger.debug(f"Got 301 redirect for {repo_name}, Location header: {location!r}")

        new_repo = parse_redirect_location(location)
        if new_repo:
            new_full_name = f"{new_repo[0]}/{new_repo[1]}"
            logger.info(f"Repository redirect detected: {repo_name} -> {new_full_name}")
            raise GitHubRepoRenamed(repo_name, new_full_name)
        raise GitHubRepoRenamed(repo_name)
    elif response.status_code == 401:
        raise GitHubAPIError("Invalid or expired GitHub token", 401)
    elif response.status_code == 404:
        raise GitHubAPIError(f"Repository or resource not found: {repo_name}", 404)
    elif response.status_code in (403, 429):
        if rate_info.is_exhausted or response.status_code == 429:
            raise GitHubAPIError(
                "GitHub API rate limit exceeded",
                response.status_code,
                rate_limit_reset=rate_info.reset_timestamp,
            )
        raise GitHubAPIError("GitHub API forbidden", 403)
    elif response.status_code != 200:
        raise GitHubAPIError(
            f"GitHub API error: {response.status_code}", response.status_code
        )
