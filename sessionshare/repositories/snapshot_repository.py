# sessionshare/repositories/snapshot_repository.py
# Repository for the compacted per-share snapshot

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sessionshare.db.base import session_scope, storage_errors
from sessionshare.models.share import Snapshot
from sessionshare.models.share_tables import share_snapshots

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SnapshotRepository:
    """At most one snapshot row per share, written by upsert."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def load(self, share_id: str) -> Optional[Snapshot]:
        async with storage_errors("load snapshot"):
            async with session_scope(self._sessions) as session:
                result = await session.execute(
                    select(share_snapshots).where(share_snapshots.c.share_id == share_id)
                )
                row = result.mappings().first()
        if row is None:
            return None
        return Snapshot(
            share_id=row["share_id"],
            up_to_sequence=row["up_to_sequence"],
            state=row["state"],
            updated_at=row["updated_at"],
        )

    async def save(
        self, share_id: str, up_to_sequence: int, state: List[Any], replace: bool = False
    ) -> None:
        """Insert or update the snapshot.

        An existing row is only replaced by a snapshot covering more events,
        so a slower concurrent compaction cannot move the snapshot backwards.
        ``replace`` drops that guard to overwrite an unreadable snapshot.
        """
        now = datetime.now(timezone.utc)
        async with storage_errors("save snapshot"):
            async with session_scope(self._sessions) as session:
                insert = _INSERT_BY_DIALECT[session.get_bind().dialect.name]
                stmt = insert(share_snapshots).values(
                    share_id=share_id,
                    up_to_sequence=up_to_sequence,
                    state=state,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[share_snapshots.c.share_id],
                    set_={
                        "up_to_sequence": stmt.excluded.up_to_sequence,
                        "state": stmt.excluded.state,
                        "updated_at": stmt.excluded.updated_at,
                    },
                    where=None if replace else share_snapshots.c.up_to_sequence < stmt.excluded.up_to_sequence,
                )
                await session.execute(stmt)
                await session.commit()
