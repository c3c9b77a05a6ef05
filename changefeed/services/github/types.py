"""Data types for GitHub API responses."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class RepoInfo:
    """Normalized repository metadata."""

    owner: str
    name: str
    description: str | None
    url: str
    avatar_url: str | None
    default_branch: str
    star_count: int
    pushed_at: datetime | None = None


@dataclass
class CommitData:
    """Single commit on a pull request."""

    sha: str
    message: str
    url: str

    @property
    def headline(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]

    def to_dict(self) -> dict[str, str]:
        return {"sha": self.sha, "message": self.message, "url": self.url}


@dataclass
class PullRequestData:
    """A merged pull request with its commits."""

    number: int
    title: str
    body: str | None
    url: str
    merged_at: datetime
    author: str
    labels: list[str] = field(default_factory=list)
    commits: list[CommitData] = field(default_factory=list)


@dataclass
class ReleaseData:
    """A published release."""

    tag_name: str
    name: str | None
    body: str | None
    url: str
    published_at: datetime
