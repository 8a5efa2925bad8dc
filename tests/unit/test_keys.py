# tests/unit/test_keys.py
# Unit tests for merge-key derivation

import pytest

from sessionshare.utils.keys import ShareDataKind, is_degraded, key_of, kind_of


@pytest.mark.parametrize(
    "item, expected",
    [
        ({"type": "session", "data": {"id": "ses_1"}}, "session"),
        ({"type": "message", "data": {"id": "msg_1"}}, "message/msg_1"),
        ({"type": "part", "data": {"messageID": "msg_1", "id": "prt_1"}}, "msg_1/prt_1"),
        ({"type": "session_diff", "data": []}, "session_diff"),
        ({"type": "model", "data": [{"id": "gpt-4"}]}, "model"),
    ],
)
def test_tagged_items_key_by_kind(item, expected):
    assert key_of(item) == expected


def test_flat_items_read_identifiers_from_item_itself():
    assert key_of({"type": "message", "id": "msg_2", "role": "user"}) == "message/msg_2"
    assert key_of({"type": "part", "messageID": "msg_2", "id": "prt_9"}) == "msg_2/prt_9"


def test_explicit_key_takes_precedence_over_kind():
    item = {"_key": "custom/1", "type": "message", "data": {"id": "msg_1"}}
    assert key_of(item) == "custom/1"
    assert key_of({"key": "session", "model": "gpt-4"}) == "session"


def test_underscore_key_wins_over_plain_key():
    assert key_of({"_key": "a", "key": "b"}) == "a"


def test_non_string_explicit_key_is_ignored():
    assert key_of({"key": 42, "type": "model"}) == "model"


def test_missing_identifiers_degrade_to_unknown():
    assert key_of({"type": "message", "data": {}}) == "message/unknown"
    assert key_of({"type": "part", "data": {"id": "prt_1"}}) == "unknown/prt_1"
    assert key_of({"type": "part"}) == "unknown/unknown"


def test_numeric_identifiers_are_stringified():
    assert key_of({"type": "message", "id": 7}) == "message/7"


@pytest.mark.parametrize("item", [None, 3, "text", [], {"type": "bogus"}, {"foo": "bar"}])
def test_unrecognized_items_never_raise(item):
    assert key_of(item) == "unknown"
    assert is_degraded(item)


def test_key_of_is_deterministic():
    item = {"type": "part", "data": {"messageID": "m", "id": "p"}}
    assert key_of(item) == key_of(dict(item))


def test_kind_of():
    assert kind_of({"type": "session_diff"}) is ShareDataKind.SESSION_DIFF
    assert kind_of({"type": "nope"}) is None
    assert kind_of("session") is None


def test_well_formed_item_is_not_degraded():
    assert not is_degraded({"type": "message", "id": "msg_1"})
