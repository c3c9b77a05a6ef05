"""Release model, including heuristic cluster membership."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from changefeed.models.base import RepositoryScopedMixin, UUIDMixin


class ReleaseType(str, Enum):
    """Release channel inferred from the tag name."""

    STABLE = "stable"
    NIGHTLY = "nightly"
    PREVIEW = "preview"
    PATCH = "patch"


class Release(UUIDMixin, RepositoryScopedMixin, SQLModel, table=True):
    """
    A published GitHub release (write-once).

    Releases sharing base version, type and publish day form a cluster.
    Only the cluster head (most recently published member) carries the
    cluster summary; siblings keep summary=None.
    """

    __tablename__ = "releases"
    __table_args__ = (
        Index(
            "ix_releases_repository_tag_name",
            "repository_id",
            "tag_name",
            unique=True,
        ),
    )

    tag_name: str = Field(max_length=255, nullable=False)
    title: str | None = Field(default=None, max_length=500)
    url: str = Field(max_length=500, nullable=False)
    body: str | None = Field(default=None)
    summary: str | None = Field(default=None)

    published_at: datetime = Field(  # type: ignore[call-overload]
        nullable=False,
        sa_type=DateTime(timezone=True),
        index=True,
    )

    release_type: str = Field(default=ReleaseType.STABLE.value, max_length=20, nullable=False)
    base_version: str | None = Field(default=None, max_length=50)
    cluster_id: str | None = Field(default=None, max_length=120, index=True)
    is_cluster_head: bool = Field(default=False, nullable=False)
