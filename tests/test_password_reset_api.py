"""Password reset — capability-token authorization end to end."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import DEFAULT_PASSWORD
from coursegate.db.models import Event, utcnow


async def _request_token(client, db_session, mailer, user):
    r = await client.post("/api/user/password-reset/request", json={"email": user.email})
    assert r.status_code == 200
    await db_session.refresh(user)
    return user.reset_password_token


@pytest.mark.asyncio
async def test_request_mails_link_with_token(client, db_session, mailer, learner):
    token = await _request_token(client, db_session, mailer, learner)

    assert token and len(token) == 64
    assert len(mailer.outbox) == 1
    message = mailer.outbox[0]
    assert message["to"] == "learner@example.com"
    assert f"/reset-password/{token}" in message["body"]


@pytest.mark.asyncio
async def test_request_unknown_email_looks_the_same(client, mailer):
    r = await client.post("/api/user/password-reset/request", json={"email": "ghost@example.com"})
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert mailer.outbox == []


@pytest.mark.asyncio
async def test_request_without_email(client, mailer):
    r = await client.post("/api/user/password-reset/request", json={})
    assert r.status_code == 200
    assert r.json() == {"success": True}


@pytest.mark.asyncio
async def test_confirm_sets_password_and_burns_token(client, db_session, mailer, learner):
    token = await _request_token(client, db_session, mailer, learner)

    r = await client.post(
        "/api/user/password-reset/confirm",
        json={"token": token, "password": "brand-new-pw"},
    )
    assert r.status_code == 200
    assert r.json() == {"success": True}

    await db_session.refresh(learner)
    assert learner.reset_password_token is None
    assert learner.reset_password_expires is None

    old = await client.post(
        "/api/auth/login", json={"email": learner.email, "password": DEFAULT_PASSWORD}
    )
    assert old.status_code == 401
    new = await client.post(
        "/api/auth/login", json={"email": learner.email, "password": "brand-new-pw"}
    )
    assert new.status_code == 200

    types = [e.type for e in (await db_session.execute(select(Event).order_by(Event.id))).scalars().all()]
    assert types == ["password_reset.requested", "password_reset.completed"]


@pytest.mark.asyncio
async def test_confirm_replay_fails(client, db_session, mailer, learner):
    token = await _request_token(client, db_session, mailer, learner)
    body = {"token": token, "password": "brand-new-pw"}

    assert (await client.post("/api/user/password-reset/confirm", json=body)).status_code == 200
    replay = await client.post("/api/user/password-reset/confirm", json=body)
    assert replay.status_code == 400
    assert replay.json() == {"error": "Invalid or expired token"}


def _reset_state(user):
    return (user.password_hash, user.reset_password_token, user.reset_password_expires)


@pytest.mark.asyncio
async def test_confirm_expired_token(client, db_session, learner):
    learner.reset_password_token = "a" * 64
    learner.reset_password_expires = utcnow() - timedelta(minutes=1)
    await db_session.commit()
    await db_session.refresh(learner)
    before = _reset_state(learner)

    r = await client.post(
        "/api/user/password-reset/confirm",
        json={"token": "a" * 64, "password": "brand-new-pw"},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid or expired token"}

    await db_session.refresh(learner)
    assert _reset_state(learner) == before


@pytest.mark.asyncio
async def test_confirm_unknown_token(client, db_session, learner):
    learner.reset_password_token = "c" * 64
    learner.reset_password_expires = utcnow() + timedelta(minutes=30)
    await db_session.commit()
    await db_session.refresh(learner)
    before = _reset_state(learner)

    r = await client.post(
        "/api/user/password-reset/confirm",
        json={"token": "b" * 64, "password": "brand-new-pw"},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid or expired token"}

    await db_session.refresh(learner)
    assert _reset_state(learner) == before
    events = (await db_session.execute(select(Event))).scalars().all()
    assert events == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"password": "brand-new-pw"},
        {"token": "c" * 64},
        {"token": "c" * 64, "password": "abc"},
    ],
)
async def test_confirm_invalid_request(client, body):
    r = await client.post("/api/user/password-reset/confirm", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid request"}


@pytest.mark.asyncio
async def test_new_request_replaces_token(client, db_session, mailer, learner):
    first = await _request_token(client, db_session, mailer, learner)
    second = await _request_token(client, db_session, mailer, learner)
    assert first != second

    r = await client.post(
        "/api/user/password-reset/confirm",
        json={"token": first, "password": "brand-new-pw"},
    )
    assert r.status_code == 400
