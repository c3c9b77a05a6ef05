"""Exceptions for the GitHub change source."""


class GitHubAPIError(Exception):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)


class GitHubRepoRenamed(GitHubAPIError):
    """Repository has been renamed or transferred on GitHub.

    Raised on a 301 so the caller can decide whether to track the new name.
    new_full_name is None when GitHub only gave an ID-based location.
    """

    def __init__(self, old_full_name: str, new_full_name: str | None = None):
        self.old_full_name = old_full_name
        self.new_full_name = new_full_name

        if new_full_name:
            message = f"Repository renamed: {old_full_name} -> {new_full_name}"
        else:
            message = f"Repository {old_full_name} was moved"

        super().__init__(message, status_code=301)
