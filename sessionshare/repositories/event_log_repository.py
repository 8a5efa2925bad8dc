# sessionshare/repositories/event_log_repository.py
# Append-only, per-share ordered log of sync batches

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sessionshare.db.base import session_scope, storage_errors
from sessionshare.errors import InvalidSecretError, StorageError
from sessionshare.models.share import ShareEvent
from sessionshare.models.share_tables import share_events, shares


class EventLogRepository:
    """Data access for share events.

    Sequence numbers come from ``shares.last_sequence``: the increment and the
    event insert share one transaction, so the share row lock orders
    concurrent appends to the same share while other shares proceed freely.
    Numbers are never reused while the share exists.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def append(self, share_id: str, items: List[Any], secret: Optional[str] = None) -> int:
        """Persist one batch atomically and return its sequence.

        With ``secret`` the batch is only appended while the share still holds
        that secret; a share recreated under a new secret raises InvalidSecretError.
        """
        now = datetime.now(timezone.utc)
        condition = shares.c.id == share_id
        if secret is not None:
            condition = and_(condition, shares.c.secret == secret)

        async with storage_errors("append event"):
            async with session_scope(self._sessions) as session:
                result = await session.execute(
                    update(shares)
                    .where(condition)
                    .values(last_sequence=shares.c.last_sequence + 1, updated_at=now)
                    .returning(shares.c.last_sequence)
                )
                sequence = result.scalar_one_or_none()
                if sequence is None:
                    found = await session.execute(select(shares.c.id).where(shares.c.id == share_id))
                    share_exists = found.first() is not None
                    await session.rollback()
                    if share_exists:
                        raise InvalidSecretError(
                            f"Share secret invalid: {share_id}", details={"id": share_id}
                        )
                    raise StorageError(
                        f"Cannot append to missing share: {share_id}",
                        details={"id": share_id},
                    )

                await session.execute(
                    share_events.insert().values(
                        share_id=share_id,
                        sequence=sequence,
                        payload=list(items),
                        created_at=now,
                    )
                )
                await session.commit()

        return sequence

    async def read_since(self, share_id: str, after_sequence: Optional[int] = None) -> List[ShareEvent]:
        """Events with sequence strictly greater than ``after_sequence``, ascending.

        With no bound the whole history is returned.
        """
        stmt = select(
            share_events.c.share_id,
            share_events.c.sequence,
            share_events.c.payload,
            share_events.c.created_at,
        ).where(share_events.c.share_id == share_id)
        if after_sequence is not None:
            stmt = stmt.where(share_events.c.sequence > after_sequence)
        stmt = stmt.order_by(share_events.c.sequence.asc())

        async with storage_errors("read events"):
            async with session_scope(self._sessions) as session:
                exists = await session.execute(select(shares.c.id).where(shares.c.id == share_id))
                if exists.first() is None:
                    raise StorageError(
                        f"Cannot read events of missing share: {share_id}",
                        details={"id": share_id},
                    )
                result = await session.execute(stmt)
                rows = result.mappings().all()

        return [
            ShareEvent(
                share_id=r["share_id"],
                sequence=r["sequence"],
                payload=r["payload"],
                created_at=r["created_at"],
            )
            for r in rows
        ]
