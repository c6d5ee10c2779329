"""Create live signature queue tables.

Tables:
- pending_signatures: signatures waiting for (or done with) validation
- pending_validations: validation tokens, matched to signatures by secret
- queue_status: last time each upstream queue was fully drained

Revision ID: 001_live_signature_queues
Revises:
Create Date: 2026-09-14
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_live_signature_queues'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = ('live',)
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create live queue tables."""

    # -------------------------------------------------------------------------
    # 1. pending_signatures
    # -------------------------------------------------------------------------
    print("  Creating pending_signatures table...")

    op.create_table(
        'pending_signatures',
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
        sa.Column('received_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('queued_at', sa.DateTime(), nullable=True),
        sa.Column('validated_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default='false'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('validation_secret', name='uq_pending_signatures_validation_secret'),
    )
    op.create_index('ix_pending_signatures_processed', 'pending_signatures', ['processed'], unique=False)
    op.create_index('ix_pending_signatures_received_at', 'pending_signatures', ['received_at'], unique=False)

    # -------------------------------------------------------------------------
    # 2. pending_validations
    # -------------------------------------------------------------------------
    print("  Creating pending_validations table...")

    op.create_table(
        'pending_validations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('validation_secret', sa.String(length=64), nullable=False),
        sa.Column('source', sa.String(length=64), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('validation_closes_at', sa.DateTime(), nullable=False),
        sa.Column('remote_address', sa.String(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pending_validations_secret', 'pending_validations', ['validation_secret'], unique=False)
    op.create_index('ix_pending_validations_closes_at', 'pending_validations', ['validation_closes_at'], unique=False)

    # -------------------------------------------------------------------------
    # 3. queue_status
    # -------------------------------------------------------------------------
    print("  Creating queue_status table...")

    op.create_table(
        'queue_status',
        sa.Column('queue_name', sa.String(length=64), nullable=False),
        sa.Column('last_emptied_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('queue_name'),
    )

    print("  Created 3 live tables")


def downgrade() -> None:
    """Drop live queue tables."""
    op.drop_table('queue_status')
    op.drop_index('ix_pending_validations_closes_at', table_name='pending_validations')
    op.drop_index('ix_pending_validations_secret', table_name='pending_validations')
    op.drop_table('pending_validations')
    op.drop_index('ix_pending_signatures_received_at', table_name='pending_signatures')
    op.drop_index('ix_pending_signatures_processed', table_name='pending_signatures')
    op.drop_table('pending_signatures')
