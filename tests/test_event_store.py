"""Audit log streams: keys, ordering and survival of rejected accounts."""

import uuid

import pytest

from conftest import auth_headers
from coursegate.events.store import EventStore, stream_key


def test_stream_key():
    uid = uuid.UUID("00000000-0000-0000-0000-000000000007")
    assert stream_key("user", uid) == "user:00000000-0000-0000-0000-000000000007"
    assert stream_key("video", "abc") == "video:abc"


def test_stream_key_rejects_unknown_kind():
    with pytest.raises(ValueError):
        stream_key("course", "abc")


@pytest.mark.asyncio
async def test_read_stream_in_append_order(db_session):
    store = EventStore(db_session)
    key = stream_key("chapter", uuid.uuid4())
    first = await store.append(key, "chapter.created", {"order": 1})
    await store.append(stream_key("chapter", uuid.uuid4()), "chapter.created", {"order": 2})
    await store.append(key, "chapter.moved", {"from": 1, "to": 2})
    await db_session.commit()

    events = await store.read_stream(key)
    assert [e.type for e in events] == ["chapter.created", "chapter.moved"]

    later = await store.read_stream(key, after_id=first.id)
    assert [e.type for e in later] == ["chapter.moved"]


@pytest.mark.asyncio
async def test_rejected_user_history_survives(client, db_session, admin, make_user):
    pending = await make_user("pending@example.com", is_active=False)
    pending_id = pending.id
    r = await client.post(
        "/api/admin/users/approve",
        json={"user_id": str(pending_id), "approve": False},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200

    events = await EventStore(db_session).read_stream(stream_key("user", pending_id))
    assert [e.type for e in events] == ["user.rejected"]
    assert events[0].meta == {"actor": "admin@example.com"}
