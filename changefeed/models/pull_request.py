"""Ingested pull request model (write-once)."""

import uuid as uuid_pkg
from datetime import datetime
from typing import Any

from sqlalchemy import Column, DateTime, Index, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from changefeed.models.base import RepositoryScopedMixin, UUIDMixin


class PullRequest(UUIDMixin, RepositoryScopedMixin, SQLModel, table=True):
    """
    A merged pull request attached to exactly one Update.

    The commits field stores the ordered commit list:
    [
        {"sha": "a1b2c3d...", "message": "Add OAuth login", "url": "https://..."},
    ]
    """

    __tablename__ = "pull_requests"
    __table_args__ = (
        Index(
            "ix_pull_requests_repository_number",
            "repository_id",
            "number",
            unique=True,
        ),
    )

    update_id: uuid_pkg.UUID = Field(
        foreign_key="updates.id",
        nullable=False,
        index=True,
    )

    number: int = Field(nullable=False)
    title: str = Field(max_length=1000, nullable=False)
    body: str | None = Field(default=None)
    url: str = Field(max_length=500, nullable=False)
    author: str = Field(max_length=255, nullable=False)

    merged_at: datetime = Field(  # type: ignore[call-overload]
        nullable=False,
        sa_type=DateTime(timezone=True),
    )

    labels: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSONB, nullable=False, server_default=text("'[]'::jsonb")),
    )

    commits: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(
            JSONB,
            nullable=False,
            server_default=text("'[]'::jsonb"),
            comment="Ordered commits: [{sha, message, url}]",
        ),
    )
