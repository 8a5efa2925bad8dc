# sessionshare/services/share_service.py

import secrets
from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sessionshare.config import Settings
from sessionshare.errors import InvalidSecretError, MalformedPayloadError, NotFoundError, StorageError
from sessionshare.models.share import Share
from sessionshare.repositories.event_log_repository import EventLogRepository
from sessionshare.repositories.share_repository import ShareRepository
from sessionshare.repositories.snapshot_repository import SnapshotRepository
from sessionshare.services.compactor import Compactor
from sessionshare.utils.keys import is_degraded
from sessionshare.utils.logger import log_info, log_warning
from sessionshare.utils.merge import items_of


def derive_share_id(session_id: Any) -> str:
    """Share id for a session: the full session id, which keeps ids collision free."""
    if not isinstance(session_id, str) or not session_id.strip():
        raise MalformedPayloadError("sessionID must be a non-empty string")
    return session_id.strip()


class ShareService:
    """Share lifecycle: create, authorize, sync, read merged data, remove.

    One instance is built at startup and shared by all requests; it only
    holds repositories bound to the process-wide connection pool.
    """

    def __init__(
        self,
        shares: ShareRepository,
        events: EventLogRepository,
        compactor: Compactor,
        secret_bytes: int = 32,
    ):
        self._shares = shares
        self._events = events
        self._compactor = compactor
        self._secret_bytes = secret_bytes

    @classmethod
    def from_session_factory(
        cls, session_factory: async_sessionmaker[AsyncSession], settings: Settings
    ) -> "ShareService":
        events = EventLogRepository(session_factory)
        snapshots = SnapshotRepository(session_factory)
        return cls(
            shares=ShareRepository(session_factory),
            events=events,
            compactor=Compactor(events, snapshots),
            secret_bytes=settings.SECRET_BYTES,
        )

    @property
    def compactor(self) -> Compactor:
        return self._compactor

    async def create(self, session_id: str) -> Share:
        share_id = derive_share_id(session_id)
        secret = secrets.token_urlsafe(self._secret_bytes)
        share = await self._shares.create(share_id, session_id.strip(), secret)
        log_info(f"ShareService: created share id={share.id}")
        return share

    async def get(self, share_id: str) -> Optional[Share]:
        return await self._shares.get(share_id)

    async def authorize(self, share_id: str, secret: Any) -> Share:
        share = await self._shares.get(share_id)
        if share is None:
            raise NotFoundError(f"Share not found: {share_id}", details={"id": share_id})
        if not isinstance(secret, str) or not secrets.compare_digest(
            share.secret.encode("utf-8"), secret.encode("utf-8")
        ):
            log_warning(f"ShareService: invalid secret for share id={share_id}")
            raise InvalidSecretError(f"Share secret invalid: {share_id}", details={"id": share_id})
        return share

    async def sync(self, share_id: str, secret: Any, items: Any) -> int:
        """Append one batch to the share's history; returns its sequence."""
        await self.authorize(share_id, secret)
        if not isinstance(items, list):
            raise MalformedPayloadError("data must be a list of items")

        degraded = sum(1 for item in items if is_degraded(item))
        if degraded:
            log_warning(
                f"ShareService: share={share_id} batch has {degraded} item(s) with unknown merge key"
            )

        try:
            sequence = await self._events.append(share_id, items, secret=secret)
        except StorageError as e:
            await self._raise_if_gone(share_id, e)
            raise
        log_info(f"ShareService: synced share={share_id} items={len(items)} sequence={sequence}")
        return sequence

    async def get_data(self, share_id: str) -> List[Any]:
        """Merged items of a share. Public: no secret needed. Unknown ids fail NotFound."""
        if await self._shares.get(share_id) is None:
            raise NotFoundError(f"Share not found: {share_id}", details={"id": share_id})
        try:
            state = await self._compactor.materialize(share_id)
        except StorageError as e:
            await self._raise_if_gone(share_id, e)
            raise
        return items_of(state)

    async def remove(self, share_id: str, secret: Any) -> None:
        await self.authorize(share_id, secret)
        if not await self._shares.delete(share_id, secret=secret):
            raise NotFoundError(f"Share not found: {share_id}", details={"id": share_id})
        log_info(f"ShareService: removed share id={share_id}")

    async def _raise_if_gone(self, share_id: str, cause: StorageError) -> None:
        # A concurrent remove turns a storage failure into a plain NotFound
        if await self._shares.get(share_id) is None:
            raise NotFoundError(f"Share not found: {share_id}", details={"id": share_id}) from cause
