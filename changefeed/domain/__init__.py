from changefeed.domain.pull_request_operations import pull_request_ops
from changefeed.domain.release_operations import release_ops
from changefeed.domain.tracked_repository_operations import tracked_repo_ops
from changefeed.domain.update_operations import update_ops

__all__ = [
    "pull_request_ops",
    "release_ops",
    "tracked_repo_ops",
    "update_ops",
]
