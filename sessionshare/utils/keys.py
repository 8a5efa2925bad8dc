# sessionshare/utils/keys.py
# Merge-key derivation for share data items

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

UNKNOWN = "unknown"

# Client-supplied explicit key fields, checked in this order
EXPLICIT_KEY_FIELDS: tuple[str, ...] = ("_key", "key")


class ShareDataKind(str, Enum):
    """Closed set of item kinds, read from the item's ``type`` field."""

    SESSION = "session"
    MESSAGE = "message"
    PART = "part"
    SESSION_DIFF = "session_diff"
    MODEL = "model"


def explicit_key(item: Mapping[str, Any]) -> str | None:
    for field in EXPLICIT_KEY_FIELDS:
        value = item.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def kind_of(item: Any) -> ShareDataKind | None:
    if not isinstance(item, Mapping):
        return None
    try:
        return ShareDataKind(item.get("type"))
    except (TypeError, ValueError):
        return None


def _body(item: Mapping[str, Any]) -> Mapping[str, Any]:
    # Tagged form {"type": ..., "data": {...}} keeps identifiers under "data"
    data = item.get("data")
    return data if isinstance(data, Mapping) else item


def _field(body: Mapping[str, Any], name: str) -> str:
    value = body.get(name)
    if isinstance(value, str) and value:
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return UNKNOWN


def key_of(item: Any) -> str:
    """Return the merge key of a share data item.

    Total and pure: an explicit key wins, then the kind decides. Missing
    identifiers degrade to ``"unknown"`` and items of no known shape key to
    ``"unknown"`` instead of raising, so one bad item never blocks its batch.

    Non-object items (``1``, ``None``, ``"x"``) and objects of unknown kind
    all share that single ``"unknown"`` slot, so within a share the last
    such item overwrites the earlier ones.

    >>> key_of({"type": "part", "data": {"messageID": "m1", "id": "p1"}})
    'm1/p1'
    """
    if not isinstance(item, Mapping):
        return UNKNOWN

    key = explicit_key(item)
    if key is not None:
        return key

    kind = kind_of(item)
    if kind is None:
        return UNKNOWN

    body = _body(item)
    if kind is ShareDataKind.MESSAGE:
        return f"message/{_field(body, 'id')}"
    if kind is ShareDataKind.PART:
        return f"{_field(body, 'messageID')}/{_field(body, 'id')}"
    # session, session_diff and model are singletons per share
    return kind.value


def is_degraded(item: Any) -> bool:
    """True when the key of ``item`` fell back to an unknown placeholder."""
    key = key_of(item)
    return key == UNKNOWN or UNKNOWN in key.split("/")
