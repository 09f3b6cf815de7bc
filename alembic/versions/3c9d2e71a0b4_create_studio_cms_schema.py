"""create_studio_cms_schema

Revision ID: 3c9d2e71a0b4
Revises:
Create Date: 2026-10-19 10:12:41.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9d2e71a0b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CONTENT_TABLES = ('slider_images', 'gallery_images', 'client_logos')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def _content_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('region_code', sa.String(length=2), nullable=False),
        sa.Column('filename', sa.String(), nullable=False, server_default=''),
        sa.Column('r2_key', sa.String(), nullable=False, server_default=''),
        sa.Column('cdn_url', sa.String(), nullable=False, server_default=''),
        sa.Column('cdn_url_mobile', sa.String(), nullable=False, server_default=''),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['region_code'], ['regions.code']),
        sa.PrimaryKeyConstraint('id'),
    ]


def upgrade() -> None:
    regions = op.create_table('regions',
        sa.Column('code', sa.String(length=2), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('domain', sa.String(), nullable=True),
        sa.Column('route', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('code')
    )

    op.create_table('admins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('assigned_regions', sa.JSON(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email')
    )
    op.create_index(op.f('ix_admins_id'), 'admins', ['id'], unique=False)

    op.create_table('slider_images',
        *_content_columns(),
        sa.Column('object_position', sa.String(), nullable=False, server_default='center center')
    )
    op.create_table('gallery_images',
        *_content_columns(),
        sa.Column('mobile_visible', sa.Integer(), nullable=False, server_default='1')
    )
    op.create_table('client_logos',
        *_content_columns(),
        sa.Column('alt_text', sa.String(), nullable=True)
    )

    # Listings are always filtered by region and sorted by display_order
    for table in CONTENT_TABLES:
        op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
        op.create_index(op.f(f'ix_{table}_region_code'), table, ['region_code'], unique=False)
        op.create_index(op.f(f'ix_{table}_r2_key'), table, ['r2_key'], unique=False)
        op.create_index(f'ix_{table}_region_order', table, ['region_code', 'display_order'], unique=False)

    op.create_table('activity_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=True),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=True),
        sa.Column('entity_id', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_activity_logs_id'), 'activity_logs', ['id'], unique=False)
    op.create_index(op.f('ix_activity_logs_admin_id'), 'activity_logs', ['admin_id'], unique=False)
    op.create_index(op.f('ix_activity_logs_action_type'), 'activity_logs', ['action_type'], unique=False)
    op.create_index(op.f('ix_activity_logs_entity_type'), 'activity_logs', ['entity_type'], unique=False)
    op.create_index(op.f('ix_activity_logs_created_at'), 'activity_logs', ['created_at'], unique=False)

    op.create_table('image_storage',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('r2_key', sa.String(), nullable=False),
        sa.Column('cdn_url', sa.String(), nullable=False),
        sa.Column('cdn_url_mobile', sa.String(), nullable=False, server_default=''),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('r2_key')
    )
    op.create_index(op.f('ix_image_storage_id'), 'image_storage', ['id'], unique=False)
    op.create_index(op.f('ix_image_storage_category'), 'image_storage', ['category'], unique=False)

    # Seed the default region so content can be created right after deployment
    op.bulk_insert(regions, [
        {'code': 'IN', 'name': 'India', 'domain': None, 'route': '/', 'is_active': True, 'is_default': True},
    ])


def downgrade() -> None:
    op.drop_index(op.f('ix_image_storage_category'), table_name='image_storage')
    op.drop_index(op.f('ix_image_storage_id'), table_name='image_storage')
    op.drop_table('image_storage')

    for index in ('created_at', 'entity_type', 'action_type', 'admin_id', 'id'):
        op.drop_index(op.f(f'ix_activity_logs_{index}'), table_name='activity_logs')
    op.drop_table('activity_logs')

    for table in reversed(CONTENT_TABLES):
        op.drop_index(f'ix_{table}_region_order', table_name=table)
        op.drop_index(op.f(f'ix_{table}_r2_key'), table_name=table)
        op.drop_index(op.f(f'ix_{table}_region_code'), table_name=table)
        op.drop_index(op.f(f'ix_{table}_id'), table_name=table)
        op.drop_table(table)

    op.drop_index(op.f('ix_admins_id'), table_name='admins')
    op.drop_table('admins')
    op.drop_table('regions')
