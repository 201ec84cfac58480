"""initial schema

Creates users, issues (with status history, tags and attachments), comments,
work orders and the append-only audit_records table.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLES = ('super_admin', 'admin', 'staff', 'citizen')
ISSUE_TYPES = ('POTHOLE', 'STREET_LIGHT', 'GRAFFITI', 'TRASH', 'WATER_LEAK', 'SIDEWALK', 'SIGNAGE', 'OTHER')
ISSUE_STATUSES = ('OPEN', 'IN_PROGRESS', 'RESOLVED', 'CLOSED', 'REJECTED')
PRIORITIES = ('LOW', 'MEDIUM', 'HIGH', 'URGENT')
STORAGE = ('s3', 'gcs', 'azure', 'local', 'gridfs', 'supabase')
WORK_STATUSES = ('PENDING', 'ASSIGNED', 'IN_PROGRESS', 'ON_HOLD', 'DONE', 'CANCELLED')


def _existing_enum(values, name):
    # the type is created with the first table that uses it
    return sa.Enum(*values, name=name).with_variant(
        postgresql.ENUM(*values, name=name, create_type=False), 'postgresql'
    )


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=300), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('role', sa.Enum(*ROLES, name='userrole'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_name', 'users', ['name'])

    op.create_table(
        'issues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(length=140), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.Enum(*ISSUE_TYPES, name='issuetype'), nullable=False),
        sa.Column('status', sa.Enum(*ISSUE_STATUSES, name='issuestatus'), nullable=False),
        sa.Column('priority', sa.Enum(*PRIORITIES, name='issuepriority'), nullable=False),
        sa.Column('reporter_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_to_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('lng', sa.Float(), nullable=False),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('address', sa.String(length=300), nullable=True),
        sa.Column('suburb', sa.String(length=120), nullable=True),
        sa.Column('postcode', sa.String(length=20), nullable=True),
        sa.Column('council', sa.String(length=120), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    for col in ('title', 'type', 'status', 'priority', 'reporter_id', 'assigned_to_id', 'is_deleted', 'created_at'):
        op.create_index(f'ix_issues_{col}', 'issues', [col])
    op.create_index('ix_issues_lat_lng', 'issues', ['lat', 'lng'])
    op.create_index('ix_issues_type_status_priority', 'issues', ['type', 'status', 'priority', 'opened_at'])

    op.create_table(
        'issue_status_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', _existing_enum(ISSUE_STATUSES, 'issuestatus'), nullable=False),
        sa.Column('note', sa.String(length=2000), nullable=True),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_issue_status_events_issue_id', 'issue_status_events', ['issue_id'])

    op.create_table(
        'issue_tags',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=60), nullable=False),
    )
    op.create_index('ix_issue_tags_issue_id', 'issue_tags', ['issue_id'])
    op.create_index('ix_issue_tags_name', 'issue_tags', ['name'])

    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_comments_issue_id', 'comments', ['issue_id'])
    op.create_index('ix_comments_author_id', 'comments', ['author_id'])
    op.create_index('ix_comments_is_internal', 'comments', ['is_internal'])
    op.create_index('ix_comments_issue_created', 'comments', ['issue_id', 'created_at'])

    op.create_table(
        'attachments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=True),
        sa.Column('comment_id', sa.Integer(), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('storage', sa.Enum(*STORAGE, name='storagekind'), nullable=False),
        sa.Column('key', sa.String(length=500), nullable=False),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('content_type', sa.String(length=100), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('caption', sa.String(length=300), nullable=True),
        sa.Column('uploaded_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_attachments_issue_id', 'attachments', ['issue_id'])
    op.create_index('ix_attachments_comment_id', 'attachments', ['comment_id'])

    op.create_table(
        'work_orders',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assignee_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.Enum(*WORK_STATUSES, name='workorderstatus'), nullable=False),
        sa.Column('eta', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.String(length=4000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_work_orders_issue_id', 'work_orders', ['issue_id'])
    op.create_index('ix_work_orders_assignee_id', 'work_orders', ['assignee_id'])
    op.create_index('ix_work_orders_status', 'work_orders', ['status'])
    op.create_index('ix_work_orders_created_at', 'work_orders', ['created_at'])
    op.create_index('ix_work_orders_assignee_status_eta', 'work_orders', ['assignee_id', 'status', 'eta'])

    op.create_table(
        'audit_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=60), nullable=False),
        sa.Column('entity_kind', sa.String(length=20), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_audit_records_actor_id', 'audit_records', ['actor_id'])
    op.create_index('ix_audit_records_action', 'audit_records', ['action'])
    op.create_index('ix_audit_entity', 'audit_records', ['entity_kind', 'entity_id', 'created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('audit_records')
    op.drop_table('work_orders')
    op.drop_table('attachments')
    op.drop_table('comments')
    op.drop_table('issue_tags')
    op.drop_table('issue_status_events')
    op.drop_table('issues')
    op.drop_table('users')
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name in ('workorderstatus', 'storagekind', 'issuepriority', 'issuestatus', 'issuetype', 'userrole'):
            op.execute(f'DROP TYPE IF EXISTS {name}')
