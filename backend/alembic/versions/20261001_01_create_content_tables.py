"""create users, workspaces, campaigns and publications

Revision ID: 20261001_01
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '20261001_01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())

    if 'workspaces' not in tables:
        op.create_table(
            'workspaces',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False),
            *_timestamps(),
        )
    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=True),
            sa.Column('current_workspace_id', sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['current_workspace_id'], ['workspaces.id'], ondelete='SET NULL'),
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
    if 'campaigns' not in tables:
        op.create_table(
            'campaigns',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('workspace_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
        )
        op.create_index('ix_campaigns_workspace_id', 'campaigns', ['workspace_id'])
    if 'social_platforms' not in tables:
        op.create_table(
            'social_platforms',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False, unique=True),
            *_timestamps(),
        )
    if 'publications' not in tables:
        op.create_table(
            'publications',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('workspace_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('campaign_id', sa.Integer(), nullable=True),
            sa.Column('title', sa.String(), nullable=True),
            sa.Column('content', sa.Text(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='draft'),
            sa.Column('scheduled_at', sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='SET NULL'),
        )
        op.create_index('ix_publications_workspace_id', 'publications', ['workspace_id'])
        op.create_index('ix_publications_scheduled_at', 'publications', ['scheduled_at'])
    if 'publication_platforms' not in tables:
        op.create_table(
            'publication_platforms',
            sa.Column('publication_id', sa.Integer(), primary_key=True),
            sa.Column('platform_id', sa.Integer(), primary_key=True),
            sa.ForeignKeyConstraint(['publication_id'], ['publications.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['platform_id'], ['social_platforms.id'], ondelete='CASCADE'),
        )


def downgrade() -> None:
    tables = set(sa.inspect(op.get_bind()).get_table_names())
    for name in ('publication_platforms', 'publications', 'social_platforms', 'campaigns', 'users', 'workspaces'):
        if name in tables:
            op.drop_table(name)
