"""Add archival state columns and the archival_events trail.

Tracks which records have left Postgres for object storage:
- Add archived_at / is_archived / storage_key / storage_tier to every
  governed table (datasets, audit_logs, saved_references)
- Create archival_events for an immutable record of tier transitions

Revision ID: 001_add_archival_state
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_add_archival_state'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

GOVERNED_TABLES = ('datasets', 'audit_logs', 'saved_references')


def upgrade() -> None:
    """Add archival columns and events table."""

    # -------------------------------------------------------------------------
    # 1. Archival state on governed tables
    # -------------------------------------------------------------------------
    for table in GOVERNED_TABLES:
        print(f"  Adding archival columns to {table}...")

        op.add_column(table, sa.Column('archived_at', sa.DateTime(), nullable=True))
        op.add_column(table, sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'))
        op.add_column(table, sa.Column('storage_key', sa.String(length=512), nullable=True))
        op.add_column(table, sa.Column('storage_tier', sa.String(length=16), nullable=True))

        # Warm selection filters on (is_archived, created_at); cold on storage_tier
        op.create_index(f'ix_{table}_archival', table, ['is_archived', 'created_at'], unique=False)
        op.create_index(f'ix_{table}_storage_tier', table, ['storage_tier'], unique=False)

    # -------------------------------------------------------------------------
    # 2. archival_events
    # -------------------------------------------------------------------------
    print("  Creating archival_events table...")

    op.create_table(
        'archival_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('table_name', sa.String(length=64), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('storage_key', sa.String(length=512), nullable=False),
        sa.Column('storage_tier', sa.String(length=16), nullable=False),
        sa.Column('record_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('initiated_by', sa.String(length=64), nullable=False, server_default='scheduler'),
        sa.Column('event_metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_archival_events_table_created',
        'archival_events',
        ['table_name', 'created_at'],
        unique=False,
    )

    print("  Migration complete!")


def downgrade() -> None:
    """Remove archival columns and events table."""

    print("  Dropping archival_events table...")
    op.drop_index('ix_archival_events_table_created', table_name='archival_events')
    op.drop_table('archival_events')

    for table in GOVERNED_TABLES:
        print(f"  Removing archival columns from {table}...")
        op.drop_index(f'ix_{table}_storage_tier', table_name=table)
        op.drop_index(f'ix_{table}_archival', table_name=table)
        op.drop_column(table, 'storage_tier')
        op.drop_column(table, 'storage_key')
        op.drop_column(table, 'is_archived')
        op.drop_column(table, 'archived_at')

    print("  Downgrade complete!")
