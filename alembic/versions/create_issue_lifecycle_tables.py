"""create issue lifecycle tables

Creates zones, wards (with boundary bounding box), users, categories, issues,
issue media / history / comments, the yearly ticket counter table, app
settings and push subscriptions.

Revision ID: create_issue_lifecycle_tables
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_issue_lifecycle_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLES = ('SUPER_ADMIN', 'ZONE_OFFICER', 'WARD_ENGINEER', 'FIELD_WORKER')
DEPARTMENTS = (
    'ROAD', 'STORM_WATER_DRAINAGE', 'SEWAGE_DISPOSAL', 'WATER_WORKS', 'STREET_LIGHT',
    'BRIDGE_CELL', 'SOLID_WASTE_MANAGEMENT', 'HEALTH', 'TOWN_PLANNING', 'PARKS_GARDENS',
    'ENCROACHMENT', 'FIRE', 'ELECTRICAL',
)
STATUSES = ('OPEN', 'ASSIGNED', 'IN_PROGRESS', 'RESOLVED', 'VERIFIED', 'REOPENED', 'REJECTED')
PRIORITIES = ('LOW', 'MEDIUM', 'HIGH', 'CRITICAL')
MEDIA_TYPES = ('BEFORE', 'AFTER')
CHANGE_TYPES = ('CREATE', 'STATUS_CHANGE', 'ASSIGNMENT', 'AFTER_MEDIA_UPLOAD', 'SOFT_DELETE')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'zones',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
    )
    op.create_index('ix_zones_code', 'zones', ['code'], unique=True)

    op.create_table(
        'wards',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ward_number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('zone_id', sa.Integer(), sa.ForeignKey('zones.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('boundary', sa.JSON(), nullable=True),
        sa.Column('min_lat', sa.Float(), nullable=True),
        sa.Column('max_lat', sa.Float(), nullable=True),
        sa.Column('min_lng', sa.Float(), nullable=True),
        sa.Column('max_lng', sa.Float(), nullable=True),
        sa.UniqueConstraint('zone_id', 'ward_number', name='uq_ward_number'),
    )
    op.create_index('ix_wards_zone_id', 'wards', ['zone_id'])
    op.create_index('ix_wards_bbox', 'wards', ['min_lat', 'max_lat', 'min_lng', 'max_lng'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=120), nullable=False),
        sa.Column('phone_number', sa.String(length=30), nullable=True),
        sa.Column('role', sa.Enum(*ROLES, name='userrole'), nullable=False),
        sa.Column('department', sa.Enum(*DEPARTMENTS, name='department'), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('ward_id', sa.Integer(), sa.ForeignKey('wards.id', ondelete='SET NULL'), nullable=True),
        sa.Column('zone_id', sa.Integer(), sa.ForeignKey('zones.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_full_name', 'users', ['full_name'])
    op.create_index('ix_users_ward_id', 'users', ['ward_id'])
    op.create_index('ix_users_zone_id', 'users', ['zone_id'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    op.create_table(
        'issue_categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('slug', sa.String(length=140), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('sla_hours', sa.Integer(), server_default='48', nullable=False),
        sa.Column('department', sa.Enum(*DEPARTMENTS, name='department', create_type=False), nullable=True),
    )
    op.create_index('ix_issue_categories_name', 'issue_categories', ['name'], unique=True)
    op.create_index('ix_issue_categories_slug', 'issue_categories', ['slug'], unique=True)

    op.create_table(
        'issues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ticket_number', sa.String(length=32), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('issue_categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('priority', sa.Enum(*PRIORITIES, name='priority'), nullable=False),
        sa.Column('status', sa.Enum(*STATUSES, name='issuestatus'), nullable=False),
        sa.Column('description', sa.String(length=5000), nullable=True),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lng', sa.Float(), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('ward_id', sa.Integer(), sa.ForeignKey('wards.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('reporter_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('assignee_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sla_target_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_issues_ticket_number', 'issues', ['ticket_number'], unique=True)
    for col in ('category_id', 'status', 'ward_id', 'reporter_id', 'assignee_id', 'created_at', 'deleted_at'):
        op.create_index(f'ix_issues_{col}', 'issues', [col])
    op.create_index('ix_issues_lat_lng', 'issues', ['lat', 'lng'])

    op.create_table(
        'issue_media',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.Enum(*MEDIA_TYPES, name='mediatype'), nullable=False),
        sa.Column('url', sa.String(length=500), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_issue_media_issue_id', 'issue_media', ['issue_id'])

    op.create_table(
        'issue_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('change_type', sa.Enum(*CHANGE_TYPES, name='changetype'), nullable=False),
        sa.Column('old_value', sa.JSON(), nullable=True),
        sa.Column('new_value', sa.JSON(), nullable=True),
        sa.Column('comment', sa.String(length=1000), nullable=True),
        sa.Column('changed_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_issue_history_issue_id', 'issue_history', ['issue_id'])
    op.create_index('ix_issue_history_created_at', 'issue_history', ['created_at'])

    op.create_table(
        'issue_comments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('body', sa.String(length=1000), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_issue_comments_issue_id', 'issue_comments', ['issue_id'])

    op.create_table(
        'system_config',
        sa.Column('key', sa.String(length=64), primary_key=True),
        sa.Column('last_value', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    )

    op.create_table(
        'app_settings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('auto_email_on_assignment', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('push_notifications_enabled', sa.Boolean(), server_default='true', nullable=False),
    )

    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('endpoint', sa.String(length=500), nullable=False),
        sa.Column('p256dh', sa.String(length=200), nullable=False),
        sa.Column('auth', sa.String(length=100), nullable=False),
    )
    op.create_index('ix_push_subscriptions_user_id', 'push_subscriptions', ['user_id'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'push_subscriptions', 'app_settings', 'system_config', 'issue_comments',
        'issue_history', 'issue_media', 'issues', 'issue_categories', 'users', 'wards', 'zones',
    ):
        op.drop_table(table)
    for enum_name in ('changetype', 'mediatype', 'issuestatus', 'priority', 'department', 'userrole'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
