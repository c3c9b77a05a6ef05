"""
GitHub change source package.

Usage: `from changefeed.services.github import GitHubReadOperations, PullRequestData`

Module structure:
- read_operations.py: All read-only API operations
- helpers.py: Rate limit handling, error and URL utilities
- types.py: Data types for normalized responses
- exceptions.py: Custom exceptions
- cache.py: TTL cache for repository metadata
- http_client.py: Shared pooled HTTP client
"""

from changefeed.services.github.cache import clear_all_caches as clear_github_caches
from changefeed.services.github.exceptions import GitHubAPIError, GitHubRepoRenamed
from changefeed.services.github.helpers import (
    RateLimitInfo,
    handle_error_response,
    parse_repo_url,
)
from changefeed.services.github.http_client import close_github_client
from changefeed.services.github.read_operations import GitHubReadOperations
from changefeed.services.github.types import (
    CommitData,
    PullRequestData,
    ReleaseData,
    RepoInfo,
)

__all__ = [
    "GitHubReadOperations",
    # HTTP client lifecycle
    "close_github_client",
    # Cache management
    "clear_github_caches",
    # Utilities
    "handle_error_response",
    "parse_repo_url",
    "RateLimitInfo",
    # Exceptions
    "GitHubAPIError",
    "GitHubRepoRenamed",
    # Types
    "CommitData",
    "PullRequestData",
    "ReleaseData",
    "RepoInfo",
]
