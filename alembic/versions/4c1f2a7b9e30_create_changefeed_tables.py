"""create_changefeed_tables

Revision ID: 4c1f2a7b9e30
Revises:
Create Date: 2026-10-17 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4c1f2a7b9e30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'tracked_repositories',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('owner', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('url', sa.String(length=500), nullable=True),
        sa.Column('description', sa.String(length=2000), nullable=True),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('default_branch', sa.String(length=100), nullable=True),
        sa.Column('star_count', sa.Integer(), nullable=False),
        sa.Column('subscriber_count', sa.Integer(), nullable=False),
        sa.Column('pushed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_fetched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tracked_repositories_id', 'tracked_repositories', ['id'], unique=False)
    op.create_index('ix_tracked_repositories_owner_name', 'tracked_repositories', ['owner', 'name'], unique=True)
    op.create_index('ix_tracked_repositories_subscriber_count', 'tracked_repositories', ['subscriber_count'], unique=False)

    op.create_table(
        'updates',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('repository_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('summary', sa.String(), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('significance', sa.String(length=20), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('pr_count', sa.Integer(), nullable=False),
        sa.Column('commit_count', sa.Integer(), nullable=False),
        sa.Column('group_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['repository_id'], ['tracked_repositories.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_updates_id', 'updates', ['id'], unique=False)
    op.create_index('ix_updates_repository_id', 'updates', ['repository_id'], unique=False)
    op.create_index('ix_updates_date', 'updates', ['date'], unique=False)
    op.create_index('ix_updates_repository_group_hash', 'updates', ['repository_id', 'group_hash'], unique=True)

    op.create_table(
        'pull_requests',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('repository_id', sa.Uuid(), nullable=False),
        sa.Column('update_id', sa.Uuid(), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=1000), nullable=False),
        sa.Column('body', sa.String(), nullable=True),
        sa.Column('url', sa.String(length=500), nullable=False),
        sa.Column('author', sa.String(length=255), nullable=False),
        sa.Column('merged_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('labels', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('commits', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False, comment='Ordered commits: [{sha, message, url}]'),
        sa.ForeignKeyConstraint(['repository_id'], ['tracked_repositories.id']),
        sa.ForeignKeyConstraint(['update_id'], ['updates.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pull_requests_id', 'pull_requests', ['id'], unique=False)
    op.create_index('ix_pull_requests_repository_id', 'pull_requests', ['repository_id'], unique=False)
    op.create_index('ix_pull_requests_update_id', 'pull_requests', ['update_id'], unique=False)
    op.create_index('ix_pull_requests_repository_number', 'pull_requests', ['repository_id', 'number'], unique=True)

    op.create_table(
        'releases',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('repository_id', sa.Uuid(), nullable=False),
        sa.Column('tag_name', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=True),
        sa.Column('url', sa.String(length=500), nullable=False),
        sa.Column('body', sa.String(), nullable=True),
        sa.Column('summary', sa.String(), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('release_type', sa.String(length=20), nullable=False),
        sa.Column('base_version', sa.String(length=50), nullable=True),
        sa.Column('cluster_id', sa.String(length=120), nullable=True),
        sa.Column('is_cluster_head', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['repository_id'], ['tracked_repositories.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_releases_id', 'releases', ['id'], unique=False)
    op.create_index('ix_releases_repository_id', 'releases', ['repository_id'], unique=False)
    op.create_index('ix_releases_published_at', 'releases', ['published_at'], unique=False)
    op.create_index('ix_releases_cluster_id', 'releases', ['cluster_id'], unique=False)
    op.create_index('ix_releases_repository_tag_name', 'releases', ['repository_id', 'tag_name'], unique=True)


def downgrade() -> None:
    op.drop_table('releases')
    op.drop_table('pull_requests')
    op.drop_table('updates')
    op.drop_table('tracked_repositories')
