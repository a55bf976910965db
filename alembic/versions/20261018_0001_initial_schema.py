"""Initial schema - users, projects, items, agent keys, item activity

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(120), nullable=True),
        sa.Column('role', sa.String(50), nullable=False, server_default='member'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Projects table
    op.create_table(
        'projects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Work items table
    op.create_table(
        'items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('project_id', sa.Uuid(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('type', sa.String(20), nullable=False, server_default='issue'),
        sa.Column('title', sa.String(200), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(20), nullable=False, server_default='open', index=True),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Item images (metadata only; bytes live in blob storage)
    op.create_table(
        'item_images',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('item_id', sa.Uuid(), sa.ForeignKey('items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('relative_path', sa.String(500), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_item_images_item_sort', 'item_images', ['item_id', 'sort_order'])

    # Agent API keys
    op.create_table(
        'agent_api_keys',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('project_id', sa.Uuid(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('created_by_user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('prefix', sa.String(64), unique=True, nullable=False),
        sa.Column('secret_hash', sa.String(128), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Item activity (append-only audit log)
    op.create_table(
        'item_activities',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('item_id', sa.Uuid(), sa.ForeignKey('items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('actor_type', sa.String(10), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True, index=True),
        sa.Column('agent_key_id', sa.Uuid(), sa.ForeignKey('agent_api_keys.id'), nullable=True, index=True),
        sa.Column('type', sa.String(40), nullable=False, index=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(actor_type = 'USER' AND actor_user_id IS NOT NULL AND agent_key_id IS NULL)"
            " OR (actor_type = 'AGENT' AND agent_key_id IS NOT NULL AND actor_user_id IS NULL)",
            name='ck_item_activities_single_actor',
        ),
    )
    op.create_index('ix_item_activities_item_order', 'item_activities', ['item_id', 'created_at', 'id'])
    op.create_index('ix_item_activities_order', 'item_activities', ['created_at', 'id'])


def downgrade() -> None:
    op.drop_index('ix_item_activities_order', table_name='item_activities')
    op.drop_index('ix_item_activities_item_order', table_name='item_activities')
    op.drop_table('item_activities')
    op.drop_table('agent_api_keys')
    op.drop_index('ix_item_images_item_sort', table_name='item_images')
    op.drop_table('item_images')
    op.drop_table('items')
    op.drop_table('projects')
    op.drop_table('users')
