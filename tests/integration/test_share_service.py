# tests/integration/test_share_service.py
# ShareService end to end against SQLite

import asyncio

import pytest
from sqlalchemy import func, select

from sessionshare.errors import (
    AlreadyExistsError,
    InvalidSecretError,
    MalformedPayloadError,
    NotFoundError,
)
from sessionshare.models.share_tables import share_events, share_snapshots
from sessionshare.repositories.event_log_repository import EventLogRepository
from sessionshare.repositories.share_repository import ShareRepository
from sessionshare.services.compactor import Compactor
from sessionshare.services.share_service import ShareService


async def _count(session_factory, table, share_id):
    async with session_factory() as session:
        return await session.scalar(
            select(func.count()).select_from(table).where(table.c.share_id == share_id)
        )


@pytest.mark.asyncio
async def test_create_share(service):
    share = await service.create("abc123")

    assert share.id == "abc123"
    assert share.session_id == "abc123"
    assert len(share.secret) >= 32
    assert await service.get_data("abc123") == []


@pytest.mark.asyncio
async def test_create_duplicate_share_fails(service):
    first = await service.create("dup")

    with pytest.raises(AlreadyExistsError):
        await service.create("dup")

    # The original secret is never regenerated
    assert (await service.get("dup")).secret == first.secret


@pytest.mark.asyncio
async def test_concurrent_creates_yield_one_share(service):
    results = await asyncio.gather(
        service.create("race"), service.create("race"), return_exceptions=True
    )

    created = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(created) == 1
    assert len(failed) == 1 and isinstance(failed[0], AlreadyExistsError)


@pytest.mark.asyncio
async def test_get_nonexistent_share_returns_none(service):
    assert await service.get("nonexistent") is None


@pytest.mark.asyncio
async def test_last_write_wins_in_first_seen_order(service):
    share = await service.create("abc123")

    await service.sync("abc123", share.secret, [{"key": "session", "model": "gpt-4"}])
    await service.sync("abc123", share.secret, [{"key": "message/1", "role": "user"}])
    await service.sync("abc123", share.secret, [{"key": "session", "model": "gpt-4-turbo"}])

    assert await service.get_data("abc123") == [
        {"key": "session", "model": "gpt-4-turbo"},
        {"key": "message/1", "role": "user"},
    ]


@pytest.mark.asyncio
async def test_sync_returns_increasing_sequences(service):
    share = await service.create("seq")

    assert await service.sync("seq", share.secret, [{"_key": "a"}]) == 1
    assert await service.sync("seq", share.secret, [{"_key": "b"}]) == 2


@pytest.mark.asyncio
async def test_tagged_items_merge_by_kind(service):
    share = await service.create("ses_tagged")
    await service.sync("ses_tagged", share.secret, [
        {"type": "session", "data": {"title": "draft"}},
        {"type": "message", "data": {"id": "m1", "role": "user"}},
        {"type": "part", "data": {"messageID": "m1", "id": "p1", "text": "hel"}},
    ])
    await service.sync("ses_tagged", share.secret, [
        {"type": "part", "data": {"messageID": "m1", "id": "p1", "text": "hello"}},
        {"type": "session", "data": {"title": "final"}},
    ])

    data = await service.get_data("ses_tagged")

    assert [item["type"] for item in data] == ["session", "message", "part"]
    assert data[0]["data"]["title"] == "final"
    assert data[2]["data"]["text"] == "hello"


@pytest.mark.asyncio
async def test_malformed_items_do_not_block_batch(service):
    share = await service.create("degraded")
    await service.sync("degraded", share.secret, [
        {"type": "message", "data": {}},
        "not an object",
        {"type": "message", "data": {"id": "ok"}},
    ])

    data = await service.get_data("degraded")

    assert {"type": "message", "data": {"id": "ok"}} in data
    assert len(data) == 3  # message/unknown, unknown, message/ok


@pytest.mark.asyncio
async def test_sync_with_invalid_secret_does_not_mutate(service, session_factory):
    await service.create("locked")

    with pytest.raises(InvalidSecretError):
        await service.sync("locked", "wrong-secret", [{"key": "session"}])

    assert await _count(session_factory, share_events, "locked") == 0
    assert (await service.get("locked")).last_sequence == 0


@pytest.mark.asyncio
async def test_sync_nonexistent_share_fails(service):
    with pytest.raises(NotFoundError):
        await service.sync("ghost", "secret", [{"key": "session"}])


@pytest.mark.asyncio
async def test_sync_requires_item_list(service):
    share = await service.create("shape")

    with pytest.raises(MalformedPayloadError):
        await service.sync("shape", share.secret, {"key": "session"})


@pytest.mark.asyncio
async def test_get_data_for_unknown_share_fails(service):
    with pytest.raises(NotFoundError):
        await service.get_data("ghost")


@pytest.mark.asyncio
async def test_get_data_twice_is_identical(service):
    share = await service.create("stable")
    await service.sync("stable", share.secret, [{"key": "a", "n": 1}, {"key": "b", "n": 2}])

    assert await service.get_data("stable") == await service.get_data("stable")


@pytest.mark.asyncio
async def test_concurrent_syncs_with_same_key_keep_one_item(service):
    share = await service.create("concurrent")

    await asyncio.gather(
        service.sync("concurrent", share.secret, [{"key": "session", "writer": "a"}]),
        service.sync("concurrent", share.secret, [{"key": "session", "writer": "b"}]),
    )

    data = await service.get_data("concurrent")
    assert len(data) == 1
    assert data[0]["writer"] in ("a", "b")


@pytest.mark.asyncio
async def test_remove_share_cascades(service, session_factory):
    share = await service.create("gone")
    await service.sync("gone", share.secret, [{"key": "session"}])
    await service.get_data("gone")  # writes a snapshot
    assert await _count(session_factory, share_snapshots, "gone") == 1

    await service.remove("gone", share.secret)

    assert await service.get("gone") is None
    with pytest.raises(NotFoundError):
        await service.get_data("gone")
    assert await _count(session_factory, share_events, "gone") == 0
    assert await _count(session_factory, share_snapshots, "gone") == 0


@pytest.mark.asyncio
async def test_remove_with_invalid_secret_keeps_share(service):
    share = await service.create("keep")
    await service.sync("keep", share.secret, [{"key": "session"}])

    with pytest.raises(InvalidSecretError):
        await service.remove("keep", "invalid-secret")

    assert await service.get("keep") is not None
    assert await service.get_data("keep") == [{"key": "session"}]


@pytest.mark.asyncio
async def test_remove_nonexistent_share_fails(service):
    with pytest.raises(NotFoundError):
        await service.remove("nonexistent", "some-secret")


@pytest.mark.asyncio
async def test_recreate_after_remove_starts_fresh(service):
    share = await service.create("again")
    await service.sync("again", share.secret, [{"key": "old"}])
    await service.remove("again", share.secret)

    renewed = await service.create("again")

    assert renewed.secret != share.secret
    assert await service.get_data("again") == []
    assert await service.sync("again", renewed.secret, [{"key": "new"}]) == 1


@pytest.mark.asyncio
async def test_authorize(service):
    share = await service.create("auth")

    assert (await service.authorize("auth", share.secret)).id == "auth"
    with pytest.raises(InvalidSecretError):
        await service.authorize("auth", share.secret + "x")
    with pytest.raises(InvalidSecretError):
        await service.authorize("auth", None)
    with pytest.raises(NotFoundError):
        await service.authorize("missing", share.secret)


class RecreatingShares(ShareRepository):
    """Removes and recreates the share under a new secret right before deleting."""

    async def delete(self, share_id, secret=None):
        await super().delete(share_id)
        await self.create(share_id, share_id, "new-secret")
        return await super().delete(share_id, secret=secret)


class RecreatingEventLog(EventLogRepository):
    """Removes and recreates the share under a new secret right before appending."""

    def __init__(self, session_factory, shares):
        super().__init__(session_factory)
        self._shares = shares

    async def append(self, share_id, items, secret=None):
        await self._shares.delete(share_id)
        await self._shares.create(share_id, share_id, "new-secret")
        return await super().append(share_id, items, secret=secret)


@pytest.mark.asyncio
async def test_remove_with_stale_secret_keeps_recreated_share(session_factory, event_log, snapshots):
    shares = RecreatingShares(session_factory)
    service = ShareService(shares, event_log, Compactor(event_log, snapshots))
    old = await service.create("sess")

    with pytest.raises(InvalidSecretError):
        await service.remove("sess", old.secret)

    survivor = await service.get("sess")
    assert survivor is not None
    assert survivor.secret == "new-secret"


@pytest.mark.asyncio
async def test_sync_with_stale_secret_does_not_touch_recreated_share(session_factory, share_repository, snapshots):
    events = RecreatingEventLog(session_factory, share_repository)
    service = ShareService(share_repository, events, Compactor(events, snapshots))
    old = await service.create("sess")

    with pytest.raises(InvalidSecretError):
        await service.sync("sess", old.secret, [{"key": "session"}])

    assert (await service.get("sess")).last_sequence == 0
    assert await _count(session_factory, share_events, "sess") == 0


@pytest.mark.asyncio
async def test_repository_writes_check_secret(share_repository, event_log, session_factory):
    await share_repository.create("guarded", "guarded", "right")

    with pytest.raises(InvalidSecretError):
        await event_log.append("guarded", [{"key": "k"}], secret="wrong")
    with pytest.raises(InvalidSecretError):
        await share_repository.delete("guarded", secret="wrong")
    assert await share_repository.delete("missing", secret="right") is False

    assert await event_log.append("guarded", [{"key": "k"}], secret="right") == 1
    assert await share_repository.delete("guarded", secret="right") is True
    assert await _count(session_factory, share_events, "guarded") == 0
