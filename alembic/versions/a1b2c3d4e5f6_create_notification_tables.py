"""create notification center tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'notification_templates',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('code', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.Enum('INFO', 'WARNING', 'CRITICAL', name='notificationseverity'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.String(length=2000), nullable=False),
        sa.Column('variables', sa.JSON(), nullable=False),
        sa.Column('target_roles', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_templates_code', 'notification_templates', ['code'], unique=True)
    op.create_index('ix_notification_templates_category', 'notification_templates', ['category'])
    op.create_index('ix_notification_templates_is_active', 'notification_templates', ['is_active'])

    op.create_table(
        'recipients',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('role', sa.Enum('USER', 'ADMIN', 'SUPERADMIN', 'POLICE', 'HOSPITAL', name='recipientrole'), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('attributes', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recipients_role', 'recipients', ['role'])
    op.create_index('ix_recipients_is_active', 'recipients', ['is_active'])

    op.create_table(
        'push_subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('recipient_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('handle', sa.String(length=255), nullable=False),
        sa.Column('platform', sa.Enum('WEB', 'ANDROID', 'IOS', name='subscriptionplatform'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('identity_bound', sa.Boolean(), nullable=False),
        sa.Column('tags_bound', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['recipient_id'], ['recipients.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('handle'),
    )
    op.create_index('ix_push_subscriptions_recipient_id', 'push_subscriptions', ['recipient_id'])

    op.create_table(
        'notification_logs',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('kind', sa.Enum('TEMPLATE', 'CUSTOM', 'TEST', name='deliverykind'), nullable=False),
        sa.Column('template_code', sa.String(length=100), nullable=True),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('body', sa.String(length=500), nullable=False),
        sa.Column('url', sa.String(length=500), nullable=True),
        sa.Column('target_role', sa.String(length=20), nullable=True),
        sa.Column('target_filters', sa.JSON(), nullable=True),
        sa.Column('target_count', sa.Integer(), nullable=False),
        sa.Column('success_count', sa.Integer(), nullable=False),
        sa.Column('fail_count', sa.Integer(), nullable=False),
        sa.Column('errors', sa.JSON(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'SENT', 'PARTIAL', 'FAILED', name='deliverystatus'), nullable=False),
        sa.Column('sent_by', sa.String(length=100), nullable=False),
        sa.Column('sent_by_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_logs_kind', 'notification_logs', ['kind'])
    op.create_index('ix_notification_logs_status', 'notification_logs', ['status'])
    op.create_index('ix_notification_logs_created_at', 'notification_logs', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_notification_logs_created_at', table_name='notification_logs')
    op.drop_index('ix_notification_logs_status', table_name='notification_logs')
    op.drop_index('ix_notification_logs_kind', table_name='notification_logs')
    op.drop_table('notification_logs')
    op.drop_index('ix_push_subscriptions_recipient_id', table_name='push_subscriptions')
    op.drop_table('push_subscriptions')
    op.drop_index('ix_recipients_is_active', table_name='recipients')
    op.drop_index('ix_recipients_role', table_name='recipients')
    op.drop_table('recipients')
    op.drop_index('ix_notification_templates_is_active', table_name='notification_templates')
    op.drop_index('ix_notification_templates_category', table_name='notification_templates')
    op.drop_index('ix_notification_templates_code', table_name='notification_templates')
    op.drop_table('notification_templates')
    sa.Enum(name='deliverystatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='deliverykind').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='subscriptionplatform').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='recipientrole').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='notificationseverity').drop(op.get_bind(), checkfirst=True)
