# sessionshare/utils/merge.py
# Last-write-wins-by-key folding of share data items

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sessionshare.utils.keys import key_of

# Ordered map key -> item; dict insertion order is the first-seen key order
MergedState = Dict[str, Any]


def fold(base: Optional[MergedState], incoming: Iterable[Any]) -> MergedState:
    """Fold ``incoming`` items onto ``base`` and return a new state.

    An item whose key is already present replaces the value in place,
    keeping the key's position; a new key is appended at the end. Items
    are applied in list order, so the later of two same-key items wins.
    ``base`` is not modified.
    """
    state: MergedState = dict(base or {})
    for item in incoming:
        state[key_of(item)] = item
    return state


def fold_batches(base: Optional[MergedState], batches: Iterable[Iterable[Any]]) -> MergedState:
    """Fold several batches in order; same result as folding their concatenation."""
    state: MergedState = dict(base or {})
    for batch in batches:
        for item in batch:
            state[key_of(item)] = item
    return state


def state_from_items(items: Iterable[Any]) -> MergedState:
    """Rebuild keyed state from a stored, already merged item list."""
    return fold(None, items)


def items_of(state: MergedState) -> List[Any]:
    return list(state.values())
