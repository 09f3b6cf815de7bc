"""add_services_and_team_members

Revision ID: 8f41b6c2d9e3
Revises: 3c9d2e71a0b4
Create Date: 2026-10-19 15:03:27.904117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8f41b6c2d9e3'
down_revision: Union[str, None] = '3c9d2e71a0b4'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CONTENT_TABLES = ('services', 'team_members')


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
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['region_code'], ['regions.code']),
        sa.PrimaryKeyConstraint('id'),
    ]


def upgrade() -> None:
    op.create_table('services',
        *_content_columns(),
        sa.Column('title', sa.String(), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=True)
    )
    op.create_table('team_members',
        *_content_columns(),
        sa.Column('name', sa.String(), nullable=False, server_default=''),
        sa.Column('position', sa.String(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True)
    )

    for table in CONTENT_TABLES:
        op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
        op.create_index(op.f(f'ix_{table}_region_code'), table, ['region_code'], unique=False)
        op.create_index(op.f(f'ix_{table}_r2_key'), table, ['r2_key'], unique=False)
        op.create_index(f'ix_{table}_region_order', table, ['region_code', 'display_order'], unique=False)


def downgrade() -> None:
    for table in reversed(CONTENT_TABLES):
        op.drop_index(f'ix_{table}_region_order', table_name=table)
        op.drop_index(op.f(f'ix_{table}_r2_key'), table_name=table)
        op.drop_index(op.f(f'ix_{table}_region_code'), table_name=table)
        op.drop_index(op.f(f'ix_{table}_id'), table_name=table)
        op.drop_table(table)
