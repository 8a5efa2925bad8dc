# sessionshare/repositories/share_repository.py
# Repository for share rows (identity, secret, lifecycle)

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sessionshare.db.base import session_scope, storage_errors
from sessionshare.errors import AlreadyExistsError, InvalidSecretError
from sessionshare.models.share import Share
from sessionshare.models.share_tables import share_events, share_snapshots, shares


class ShareRepository:
    """Repository for share persistence."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def create(self, share_id: str, session_id: str, secret: str) -> Share:
        """Insert a new share. The primary key makes the existence check atomic."""
        now = datetime.now(timezone.utc)
        async with storage_errors("create share"):
            async with session_scope(self._sessions) as session:
                try:
                    await session.execute(
                        shares.insert().values(
                            id=share_id,
                            secret=secret,
                            session_id=session_id,
                            last_sequence=0,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise AlreadyExistsError(
                        f"Share already exists: {share_id}", details={"id": share_id}
                    )

        return Share(
            id=share_id,
            secret=secret,
            session_id=session_id,
            created_at=now,
            updated_at=now,
            last_sequence=0,
        )

    async def get(self, share_id: str) -> Optional[Share]:
        """Load share by id. Returns None if not found."""
        async with storage_errors("load share"):
            async with session_scope(self._sessions) as session:
                result = await session.execute(select(shares).where(shares.c.id == share_id))
                row = result.mappings().first()
        return Share.from_row(row) if row else None

    async def delete(self, share_id: str, secret: Optional[str] = None) -> bool:
        """Delete the share with its events and snapshot in one transaction.

        With ``secret`` the share row is only deleted while it still holds that
        secret; a share recreated under a new secret raises InvalidSecretError.
        Returns False when no such share exists.
        """
        condition = shares.c.id == share_id
        if secret is not None:
            condition = and_(condition, shares.c.secret == secret)

        async with storage_errors("delete share"):
            async with session_scope(self._sessions) as session:
                result = await session.execute(delete(shares).where(condition))
                if result.rowcount == 0:
                    found = await session.execute(select(shares.c.id).where(shares.c.id == share_id))
                    share_exists = found.first() is not None
                    await session.rollback()
                    if secret is not None and share_exists:
                        raise InvalidSecretError(
                            f"Share secret invalid: {share_id}", details={"id": share_id}
                        )
                    return False
                await session.execute(delete(share_events).where(share_events.c.share_id == share_id))
                await session.execute(delete(share_snapshots).where(share_snapshots.c.share_id == share_id))
                await session.commit()
        return True

    async def list_stale_share_ids(self, limit: int = 100) -> List[str]:
        """Ids of shares whose event log is ahead of their snapshot, oldest write first."""
        snapshot_seq = func.coalesce(share_snapshots.c.up_to_sequence, 0)
        stmt = (
            select(shares.c.id)
            .select_from(
                shares.outerjoin(share_snapshots, share_snapshots.c.share_id == shares.c.id)
            )
            .where(shares.c.last_sequence > snapshot_seq)
            .order_by(shares.c.updated_at.asc())
            .limit(limit)
        )
        async with storage_errors("list stale shares"):
            async with session_scope(self._sessions) as session:
                result = await session.execute(stmt)
                return [row[0] for row in result.fetchall()]
