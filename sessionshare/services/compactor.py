# sessionshare/services/compactor.py

import json
from typing import Any, Iterator, List, Optional, Tuple

from sessionshare.errors import StorageError
from sessionshare.models.share import ShareEvent, Snapshot
from sessionshare.repositories.event_log_repository import EventLogRepository
from sessionshare.repositories.snapshot_repository import SnapshotRepository
from sessionshare.utils.logger import log_exception, log_info, log_warning
from sessionshare.utils.merge import MergedState, fold_batches, items_of, state_from_items


def _payload_items(event: ShareEvent) -> Optional[List[Any]]:
    """Items of a stored event, or None when the payload cannot be parsed."""
    payload = event.payload
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            return None
    return payload if isinstance(payload, list) else None


class Compactor:
    """Maintains the per-share snapshot so reads only replay the uncompacted tail."""

    def __init__(self, events: EventLogRepository, snapshots: SnapshotRepository):
        self._events = events
        self._snapshots = snapshots

    def _base_of(self, share_id: str, snapshot: Optional[Snapshot]) -> Tuple[MergedState, Optional[int]]:
        if snapshot is None:
            return {}, None
        if not isinstance(snapshot.state, list):
            # Rebuild from full history rather than serve a broken view
            log_warning(f"Compactor: unreadable snapshot for share={share_id}, rebuilding")
            return {}, None
        return state_from_items(snapshot.state), snapshot.up_to_sequence

    def _valid_batches(self, share_id: str, events: List[ShareEvent]) -> Iterator[List[Any]]:
        for event in events:
            items = _payload_items(event)
            if items is None:
                log_warning(
                    f"Compactor: skipping unparseable event share={share_id} sequence={event.sequence}"
                )
                continue
            yield items

    async def materialize(self, share_id: str) -> MergedState:
        """Return the merged state of ``share_id``, refreshing its snapshot if behind.

        No write happens when the snapshot already covers every event. A
        failed snapshot write is logged and the fresh state is still returned.
        """
        snapshot = await self._snapshots.load(share_id)
        base, up_to = self._base_of(share_id, snapshot)
        # A discarded snapshot must be overwritten even at the same sequence
        replace = snapshot is not None and up_to is None

        events = await self._events.read_since(share_id, up_to)
        if not events:
            return base

        state = fold_batches(base, self._valid_batches(share_id, events))
        last_sequence = events[-1].sequence

        try:
            await self._snapshots.save(share_id, last_sequence, items_of(state), replace=replace)
            log_info(
                f"Compactor: share={share_id} folded {len(events)} event(s) up to sequence={last_sequence}"
            )
        except StorageError as e:
            log_exception(e, f"Compactor: snapshot write failed for share={share_id}")

        return state
