"""create pastes table

Revision ID: 001_create_pastes
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_create_pastes'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'pastes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('ttl_seconds', sa.Integer(), nullable=True),
        sa.Column('max_views', sa.Integer(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('length(content) > 0', name='ck_pastes_content_non_empty'),
        sa.CheckConstraint('ttl_seconds IS NULL OR ttl_seconds >= 1', name='ck_pastes_ttl_seconds_min_1'),
        sa.CheckConstraint('max_views IS NULL OR max_views >= 1', name='ck_pastes_max_views_min_1'),
        sa.CheckConstraint('view_count >= 0', name='ck_pastes_view_count_non_negative'),
    )

    # Housekeeping sweeps scan by expiry; lookups go through the primary key.
    op.create_index(
        'ix_pastes_expires_at',
        'pastes',
        ['expires_at'],
        unique=False,
        postgresql_where=sa.text('expires_at IS NOT NULL'),
        sqlite_where=sa.text('expires_at IS NOT NULL'),
    )
    op.create_index('ix_pastes_created_at', 'pastes', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_pastes_created_at', table_name='pastes')
    op.drop_index('ix_pastes_expires_at', table_name='pastes')
    op.drop_table('pastes')
