from changefeed.models.pull_request import PullRequest
from changefeed.models.release import Release, ReleaseType
from changefeed.models.tracked_repository import (
    TrackedRepository,
    TrackedRepositoryCreate,
)
from changefeed.models.update import Update, UpdateCategory, UpdateSignificance

__all__ = [
    "PullRequest",
    "Release",
    "ReleaseType",
    "TrackedRepository",
    "TrackedRepositoryCreate",
    "Update",
    "UpdateCategory",
    "UpdateSignificance",
]
