# tests/integration/test_event_log.py
# Event log ordering, atomicity and failure modes against SQLite

import asyncio

import pytest
from sqlalchemy import func, select

from sessionshare.errors import StorageError
from sessionshare.models.share_tables import share_events, shares


@pytest.mark.asyncio
async def test_append_assigns_increasing_sequences(share_repository, event_log):
    await share_repository.create("s1", "s1", "secret")

    seqs = [await event_log.append("s1", [{"key": f"k{i}"}]) for i in range(3)]

    assert seqs == [1, 2, 3]
    events = await event_log.read_since("s1")
    assert [e.sequence for e in events] == [1, 2, 3]
    assert events[1].payload == [{"key": "k1"}]


@pytest.mark.asyncio
async def test_read_since_is_strictly_after_bound(share_repository, event_log):
    await share_repository.create("s1", "s1", "secret")
    for i in range(4):
        await event_log.append("s1", [{"key": "k", "v": i}])

    assert [e.sequence for e in await event_log.read_since("s1", 2)] == [3, 4]
    assert await event_log.read_since("s1", 4) == []
    assert len(await event_log.read_since("s1", None)) == 4


@pytest.mark.asyncio
async def test_sequences_are_per_share(share_repository, event_log):
    await share_repository.create("a", "a", "x")
    await share_repository.create("b", "b", "y")

    assert await event_log.append("a", []) == 1
    assert await event_log.append("b", []) == 1
    assert await event_log.append("a", []) == 2
    assert [e.share_id for e in await event_log.read_since("b")] == ["b"]


@pytest.mark.asyncio
async def test_concurrent_appends_get_distinct_sequences(share_repository, event_log):
    await share_repository.create("s1", "s1", "secret")

    seqs = await asyncio.gather(*(event_log.append("s1", [{"key": "k", "n": n}]) for n in range(5)))

    assert sorted(seqs) == [1, 2, 3, 4, 5]
    events = await event_log.read_since("s1")
    assert [e.sequence for e in events] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_append_to_missing_share_fails_without_writing(event_log, session_factory):
    with pytest.raises(StorageError):
        await event_log.append("ghost", [{"key": "k"}])

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(share_events))
    assert count == 0


@pytest.mark.asyncio
async def test_read_since_missing_share_fails(event_log):
    with pytest.raises(StorageError):
        await event_log.read_since("ghost")


@pytest.mark.asyncio
async def test_append_bumps_share_counter_and_updated_at(share_repository, event_log, session_factory):
    created = await share_repository.create("s1", "s1", "secret")
    await event_log.append("s1", [{"key": "k"}])

    share = await share_repository.get("s1")
    assert share.last_sequence == 1
    assert share.updated_at.replace(tzinfo=None) >= created.updated_at.replace(tzinfo=None)

    async with session_factory() as session:
        last = await session.scalar(select(shares.c.last_sequence).where(shares.c.id == "s1"))
    assert last == 1
