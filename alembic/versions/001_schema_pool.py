"""Create schema pool registry

Revision ID: 001_schema_pool
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers
revision = '001_schema_pool'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create common.schema_pool"""

    op.execute('CREATE SCHEMA IF NOT EXISTS common')

    # ====================
    # SCHEMA POOL TABLE
    # ====================
    op.create_table(
        'schema_pool',
        sa.Column('schema_id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('schema_name', sa.String(63), unique=True, nullable=False),
        sa.Column('status', sa.String(20), server_default='AVAILABLE', nullable=False),
        sa.Column('account_id', sa.String(255), nullable=True),
        sa.Column('allocated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('AVAILABLE', 'ALLOCATED', 'DELETED')",
            name='ck_schema_pool_status',
        ),
        sa.CheckConstraint(
            'updated_at IS NULL OR created_at <= updated_at',
            name='ck_schema_pool_updated_after_created',
        ),
        schema='common'
    )

    op.create_index('idx_schema_pool_status', 'schema_pool', ['status'], schema='common')
    op.create_index('idx_schema_pool_created_at', 'schema_pool', ['created_at'], schema='common')


def downgrade():
    """Drop common.schema_pool; the common schema itself is left in place"""
    op.drop_index('idx_schema_pool_created_at', table_name='schema_pool', schema='common')
    op.drop_index('idx_schema_pool_status', table_name='schema_pool', schema='common')
    op.drop_table('schema_pool', schema='common')
