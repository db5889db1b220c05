"""Reminder pipeline schema

Revision ID: 001_reminder_tables
Revises:
Create Date: 2026-10-19

Creates the tables used by task reminders and Web Push delivery:
- tasks: assignable work items with optional due date/time
- notifications: in-app notification history (reminders and other types)
- push_subscriptions: Web Push endpoints per user and device
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_reminder_tables'
down_revision = None
branch_labels = None
depends_on = None


def _uuid_type():
    return postgresql.UUID(as_uuid=True).with_variant(sa.LargeBinary(16), 'sqlite')


def _json_type():
    return postgresql.JSONB().with_variant(sa.JSON(), 'sqlite')


def upgrade() -> None:
    """
    Create tasks, notifications and push_subscriptions tables.

    Indexes:
    - ix_tasks_assignee_status: reminder candidate lookup
    - ix_notifications_user_reference: reminder dedup lookup
    - ix_notifications_user_unread: unread badge count (partial on PostgreSQL)
    - uq_push_subscriptions_user_endpoint: one row per user and endpoint
    """

    # Create tasks table
    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('uuid', _uuid_type(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('assignee_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='todo'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('due_time', sa.Time(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_uuid', 'tasks', ['uuid'], unique=True)
    op.create_index('ix_tasks_assignee_id', 'tasks', ['assignee_id'])
    op.create_index('ix_tasks_assignee_status', 'tasks', ['assignee_id', 'status'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('uuid', _uuid_type(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.String(length=500), nullable=False),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('reference_type', sa.String(length=30), nullable=True),
        sa.Column('data', _json_type(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_uuid', 'notifications', ['uuid'], unique=True)
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])
    op.create_index(
        'ix_notifications_user_reference',
        'notifications',
        ['user_id', 'reference_id', 'type', 'created_at'],
    )
    op.create_index(
        'ix_notifications_user_unread',
        'notifications',
        ['user_id'],
        postgresql_where=sa.text('is_read = false'),
    )

    # Create push_subscriptions table
    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('uuid', _uuid_type(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('endpoint', sa.String(length=1024), nullable=False),
        sa.Column('p256dh_key', sa.String(length=255), nullable=False),
        sa.Column('auth_key', sa.String(length=255), nullable=False),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'endpoint', name='uq_push_subscriptions_user_endpoint'),
    )
    op.create_index('ix_push_subscriptions_uuid', 'push_subscriptions', ['uuid'], unique=True)
    op.create_index('ix_push_subscriptions_user_id', 'push_subscriptions', ['user_id'])


def downgrade() -> None:
    """Drop reminder pipeline tables."""
    op.drop_index('ix_push_subscriptions_user_id', table_name='push_subscriptions')
    op.drop_index('ix_push_subscriptions_uuid', table_name='push_subscriptions')
    op.drop_table('push_subscriptions')

    op.drop_index('ix_notifications_user_unread', table_name='notifications')
    op.drop_index('ix_notifications_user_reference', table_name='notifications')
    op.drop_index('ix_notifications_created_at', table_name='notifications')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_index('ix_notifications_uuid', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('ix_tasks_assignee_status', table_name='tasks')
    op.drop_index('ix_tasks_assignee_id', table_name='tasks')
    op.drop_index('ix_tasks_uuid', table_name='tasks')
    op.drop_table('tasks')
