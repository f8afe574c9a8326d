"""create users table

Revision ID: 7d3f2a91c4e8
Revises:
Create Date: 2026-10-17 10:12:44.201733

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7d3f2a91c4e8'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('ip_address', sa.String(length=15), nullable=True),
        sa.Column('location', sa.String(length=100), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('blocked', sa.Boolean(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_active', 'users', ['active'])
    op.create_index('ix_users_blocked', 'users', ['blocked'])
    op.create_index('ix_users_location', 'users', ['location'])
    op.create_index('ix_users_active_blocked', 'users', ['active', 'blocked'])


def downgrade() -> None:
    op.drop_index('ix_users_active_blocked', table_name='users')
    op.drop_index('ix_users_location', table_name='users')
    op.drop_index('ix_users_blocked', table_name='users')
    op.drop_index('ix_users_active', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
