# sessionshare/models/share_tables.py
# Shares, their append-only event log and the compacted snapshot

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    BigInteger,
    Column,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from sessionshare.db.base import metadata

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# BIGSERIAL on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
IdType = BigInteger().with_variant(Integer(), "sqlite")


shares = Table(
    'shares',
    metadata,
    Column('id', Text, primary_key=True),  # derived from session_id
    Column('secret', Text, nullable=False),
    Column('session_id', Text, nullable=False),
    # last sequence handed out by the event log for this share
    Column('last_sequence', BigInteger, nullable=False, default=0, server_default='0'),
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
    Column('updated_at', TIMESTAMP(timezone=True), nullable=False),
    Index('ix_shares_session_id', 'session_id'),
    Index('ix_shares_updated_at', 'updated_at'),
)


share_events = Table(
    'share_events',
    metadata,
    Column('id', IdType, primary_key=True, autoincrement=True),
    Column('share_id', Text, ForeignKey('shares.id', ondelete='CASCADE'), nullable=False),
    Column('sequence', BigInteger, nullable=False),
    Column('payload', JSONType, nullable=False),  # list of share data items
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
    UniqueConstraint('share_id', 'sequence', name='uq_share_events_share_sequence'),
)


share_snapshots = Table(
    'share_snapshots',
    metadata,
    Column('share_id', Text, ForeignKey('shares.id', ondelete='CASCADE'), primary_key=True),
    Column('up_to_sequence', BigInteger, nullable=False),
    Column('state', JSONType, nullable=False),  # merged items, first-seen key order
    Column('updated_at', TIMESTAMP(timezone=True), nullable=False),
)
