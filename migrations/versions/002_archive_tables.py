"""Create archive store tables.

Runs against ARCHIVE_DATABASE_URL. Archive rows keep the live row's id as
primary key so re-archiving a row overwrites it.

Tables:
- archived_signatures_not_validated
- archived_signatures_processed
- archived_validations_processed
- archived_validations_orphaned

Revision ID: 002_archive_tables
Revises:
Create Date: 2026-09-14
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_archive_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = ('archive',)
depends_on: Union[str, Sequence[str], None] = None

SIGNATURE_TABLES = ('archived_signatures_not_validated', 'archived_signatures_processed')
VALIDATION_TABLES = ('archived_validations_processed', 'archived_validations_orphaned')


def _signature_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('validation_secret', sa.String(length=64), nullable=False),
        sa.Column('source', sa.String(length=64), nullable=False),
        sa.Column('petition_id', sa.String(length=64), nullable=False),
        sa.Column('petition_closes_at', sa.DateTime(), nullable=True),
        sa.Column('validation_closes_at', sa.DateTime(), nullable=True),
        sa.Column('first_name', sa.String(length=128), nullable=True),
        sa.Column('last_name', sa.String(length=128), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('postcode', sa.String(length=16), nullable=True),
        sa.Column('country_code', sa.String(length=2), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=False),
        sa.Column('queued_at', sa.DateTime(), nullable=True),
        sa.Column('validated_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('archived_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _validation_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('validation_secret', sa.String(length=64), nullable=False),
        sa.Column('source', sa.String(length=64), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=False),
        sa.Column('validation_closes_at', sa.DateTime(), nullable=False),
        sa.Column('remote_address', sa.String(length=45), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create archive tables."""
    for table in SIGNATURE_TABLES:
        print(f"  Creating {table} table...")
        op.create_table(
            table,
            *_signature_columns(),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('validation_secret', name=f'uq_{table}_validation_secret'),
        )
        op.create_index(f'ix_{table}_archived_at', table, ['archived_at'], unique=False)

    for table in VALIDATION_TABLES:
        print(f"  Creating {table} table...")
        op.create_table(
            table,
            *_validation_columns(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{table}_archived_at', table, ['archived_at'], unique=False)

    print("  Created 4 archive tables")


def downgrade() -> None:
    """Drop archive tables."""
    for table in (*VALIDATION_TABLES, *SIGNATURE_TABLES):
        op.drop_index(f'ix_{table}_archived_at', table_name=table)
        op.drop_table(table)
