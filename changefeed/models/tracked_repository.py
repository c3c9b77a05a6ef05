"""Tracked repository model: the unit of ingestion and freshness."""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from changefeed.models.base import TimestampMixin, UUIDMixin


class TrackedRepositoryBase(SQLModel):
    """Base fields for TrackedRepository."""

    owner: str = Field(max_length=255, nullable=False)
    name: str = Field(max_length=255, nullable=False)
    url: str | None = Field(default=None, max_length=500)
    description: str | None = Field(default=None, max_length=2000)
    avatar_url: str | None = Field(default=None, max_length=500)
    default_branch: str | None = Field(default=None, max_length=100)
    star_count: int = Field(default=0, nullable=False)


class TrackedRepository(TrackedRepositoryBase, UUIDMixin, TimestampMixin, table=True):
    """
    A GitHub repository whose activity is ingested into Updates.

    last_fetched_at is the freshness stamp: null means never ingested (or
    reset by a forced refresh), otherwise the time the last ingestion
    started or finished. subscriber_count orders the periodic sweep.
    """

    __tablename__ = "tracked_repositories"
    __table_args__ = (
        Index(
            "ix_tracked_repositories_owner_name",
            "owner",
            "name",
            unique=True,
        ),
    )

    subscriber_count: int = Field(default=0, nullable=False, index=True)

    pushed_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
        description="Last push to the repository on GitHub",
    )

    last_fetched_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
        description="When activity was last pulled from GitHub",
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class TrackedRepositoryCreate(SQLModel):
    """Schema for tracking a repository."""

    owner: str | None = None
    name: str | None = None
    url: str | None = None
    since: datetime | None = None
