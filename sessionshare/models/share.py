# sessionshare/models/share.py
# Plain records returned by the repositories

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping


@dataclass(frozen=True)
class Share:
    id: str
    secret: str
    session_id: str
    created_at: datetime
    updated_at: datetime
    last_sequence: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Share":
        return cls(
            id=row["id"],
            secret=row["secret"],
            session_id=row["session_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            last_sequence=row["last_sequence"],
        )

    def public_info(self) -> dict:
        """Share metadata safe to expose to readers (no secret)."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class ShareEvent:
    """One immutable sync batch."""

    share_id: str
    sequence: int
    payload: Any
    created_at: datetime


@dataclass(frozen=True)
class Snapshot:
    """Fold of every event with ``sequence <= up_to_sequence``."""

    share_id: str
    up_to_sequence: int
    state: List[Any] = field(default_factory=list)
    updated_at: datetime | None = None
