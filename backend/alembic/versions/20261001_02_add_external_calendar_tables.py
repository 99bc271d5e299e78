"""add external calendar connections and events

Revision ID: 20261001_02
Revises: 20261001_01
Create Date: 2026-10-01 00:10:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '20261001_02'
down_revision: Union[str, None] = '20261001_01'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

calendar_provider = sa.Enum('google', 'outlook', name='calendarprovider')
connection_status = sa.Enum('connected', 'error', name='calendarconnectionstatus')


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())

    if 'external_calendar_connections' not in tables:
        op.create_table(
            'external_calendar_connections',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('workspace_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('provider', calendar_provider, nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('access_token', sa.Text(), nullable=False),
            sa.Column('refresh_token', sa.Text(), nullable=True),
            sa.Column('token_expires_at', sa.DateTime(), nullable=True),
            sa.Column('sync_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('status', connection_status, nullable=False, server_default='connected'),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('last_sync_at', sa.DateTime(), nullable=True),
            sa.Column('sync_config', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        )
        op.create_index('ix_external_calendar_connections_workspace_id', 'external_calendar_connections', ['workspace_id'])
        op.create_index('ix_external_calendar_connections_user_id', 'external_calendar_connections', ['user_id'])
        op.create_index('ix_external_calendar_connections_provider', 'external_calendar_connections', ['provider'])
        op.create_index('ix_external_calendar_connections_status', 'external_calendar_connections', ['status'])

    if 'external_calendar_events' not in tables:
        op.create_table(
            'external_calendar_events',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('connection_id', sa.Integer(), nullable=False),
            sa.Column('publication_id', sa.Integer(), nullable=False),
            sa.Column('external_event_id', sa.String(), nullable=False),
            sa.Column('provider', calendar_provider, nullable=False),
            sa.Column('last_updated_at', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['connection_id'], ['external_calendar_connections.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['publication_id'], ['publications.id'], ondelete='CASCADE'),
            sa.UniqueConstraint('connection_id', 'publication_id', name='uq_external_event_connection_publication'),
        )
        op.create_index('ix_external_calendar_events_connection_id', 'external_calendar_events', ['connection_id'])
        op.create_index('ix_external_calendar_events_publication_id', 'external_calendar_events', ['publication_id'])


def downgrade() -> None:
    tables = set(sa.inspect(op.get_bind()).get_table_names())
    if 'external_calendar_events' in tables:
        op.drop_table('external_calendar_events')
    if 'external_calendar_connections' in tables:
        op.drop_table('external_calendar_connections')
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        connection_status.drop(bind, checkfirst=True)
        calendar_provider.drop(bind, checkfirst=True)
