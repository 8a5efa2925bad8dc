"""create share tables

Revision ID: 5d2e8c1f0a7b
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5d2e8c1f0a7b'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def upgrade() -> None:
    op.create_table(
        'shares',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('secret', sa.Text(), nullable=False),
        sa.Column('session_id', sa.Text(), nullable=False),
        sa.Column('last_sequence', sa.BigInteger(), server_default='0', nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shares_session_id', 'shares', ['session_id'])
    op.create_index('ix_shares_updated_at', 'shares', ['updated_at'])

    op.create_table(
        'share_events',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('share_id', sa.Text(), nullable=False),
        sa.Column('sequence', sa.BigInteger(), nullable=False),
        sa.Column('payload', _json(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['share_id'], ['shares.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('share_id', 'sequence', name='uq_share_events_share_sequence'),
    )

    # One snapshot per share, replaced in place by compaction
    op.create_table(
        'share_snapshots',
        sa.Column('share_id', sa.Text(), nullable=False),
        sa.Column('up_to_sequence', sa.BigInteger(), nullable=False),
        sa.Column('state', _json(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['share_id'], ['shares.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('share_id'),
    )


def downgrade() -> None:
    op.drop_table('share_snapshots')
    op.drop_table('share_events')
    op.drop_index('ix_shares_updated_at', table_name='shares')
    op.drop_index('ix_shares_session_id', table_name='shares')
    op.drop_table('shares')
