"""Update model: one semantically coherent change built from 1..N PRs."""

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel

from changefeed.models.base import RepositoryScopedMixin, UUIDMixin


class UpdateCategory(str, Enum):
    """What kind of change an Update describes."""

    FEATURE = "feature"
    ENHANCEMENT = "enhancement"
    BUGFIX = "bugfix"
    BREAKING = "breaking"
    DEPRECATION = "deprecation"
    PERFORMANCE = "performance"
    SECURITY = "security"
    DOCS = "docs"


class UpdateSignificance(str, Enum):
    """How much an Update matters to users of the repository."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    INTERNAL = "internal"


class Update(UUIDMixin, RepositoryScopedMixin, SQLModel, table=True):
    """
    A grouped, summarized change. Immutable once created.

    group_hash identifies the exact PR set the Update was built from, so
    re-processing the same PRs always resolves to the same row.
    """

    __tablename__ = "updates"
    __table_args__ = (
        Index(
            "ix_updates_repository_group_hash",
            "repository_id",
            "group_hash",
            unique=True,
        ),
    )

    title: str = Field(max_length=500, nullable=False)
    summary: str = Field(nullable=False)
    category: str = Field(max_length=20, nullable=False)
    significance: str = Field(max_length=20, nullable=False)

    date: datetime = Field(  # type: ignore[call-overload]
        nullable=False,
        sa_type=DateTime(timezone=True),
        index=True,
        description="Latest merge time among the Update's PRs",
    )

    pr_count: int = Field(default=0, nullable=False)
    commit_count: int = Field(default=0, nullable=False)
    group_hash: str = Field(max_length=64, nullable=False)

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
