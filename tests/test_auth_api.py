"""Registration, login and the current user.

Learn: Tests cover:
1. Registration creates a pending account (and its error messages)
2. Login only succeeds for approved accounts
3. /auth/me resolves the session to the stored record
"""

import pytest
from sqlalchemy import select

from conftest import DEFAULT_PASSWORD, auth_headers, token_headers
from coursegate.db.models import Event, User


def _registration(**overrides):
    body = {
        "email": "New.User@Example.com",
        "password": "password123",
        "first_name": "New",
        "last_name": "User",
    }
    body.update(overrides)
    return body


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_creates_pending_user(client, db_session):
    r = await client.post("/api/auth/register", json=_registration())
    assert r.status_code == 201
    assert r.json()["email"] == "new.user@example.com"

    user = (await db_session.execute(select(User))).scalars().one()
    assert user.role == "user"
    assert user.is_active is False
    assert user.password_hash != "password123"

    events = (await db_session.execute(select(Event).order_by(Event.id))).scalars().all()
    assert [e.type for e in events] == ["user.registered"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    r1 = await client.post("/api/auth/register", json=_registration())
    assert r1.status_code == 201

    r2 = await client.post("/api/auth/register", json=_registration(email="new.user@example.com"))
    assert r2.status_code == 400
    assert r2.json() == {"message": "A user with this email already exists"}


@pytest.mark.asyncio
async def test_register_missing_field(client):
    r = await client.post("/api/auth/register", json=_registration(last_name=""))
    assert r.status_code == 400
    assert r.json() == {"message": "All fields are required"}


@pytest.mark.asyncio
async def test_register_short_password(client):
    r = await client.post("/api/auth/register", json=_registration(password="abc"))
    assert r.status_code == 400
    assert r.json() == {"message": "Password must be at least 6 characters long"}


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(client, learner):
    r = await client.post(
        "/api/auth/login",
        json={"email": "LEARNER@example.com", "password": DEFAULT_PASSWORD},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "learner@example.com"

    me = await client.get(
        "/api/auth/me",
        headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["user"]["id"] == str(learner.id)


@pytest.mark.asyncio
async def test_login_wrong_password(client, learner):
    r = await client.post(
        "/api/auth/login",
        json={"email": "learner@example.com", "password": "wrong-password"},
    )
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid credentials"}


@pytest.mark.asyncio
async def test_login_unknown_email(client):
    r = await client.post(
        "/api/auth/login",
        json={"email": "ghost@example.com", "password": DEFAULT_PASSWORD},
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_login_pending_account(client, make_user):
    await make_user("pending@example.com", is_active=False)
    r = await client.post(
        "/api/auth/login",
        json={"email": "pending@example.com", "password": DEFAULT_PASSWORD},
    )
    assert r.status_code == 403
    assert r.json() == {"error": "Account is pending approval"}


@pytest.mark.asyncio
async def test_login_missing_fields(client):
    r = await client.post("/api/auth/login", json={"email": "a@example.com"})
    assert r.status_code == 400
    assert r.json() == {"error": "Email and password are required"}


# ═══════════════════════════════════════════════════════════
# Current user
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_me_with_garbage_token(client):
    r = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_expired_token(client, learner):
    from coursegate.auth.jwt import create_access_token

    token = create_access_token(str(learner.id), learner.email, "user", expires_minutes=-1)
    r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_user_deleted_after_login(client):
    r = await client.get("/api/auth/me", headers=token_headers("gone@example.com"))
    assert r.status_code == 404
    assert r.json() == {"error": "User not found"}


@pytest.mark.asyncio
async def test_me_pending_account_still_resolves(client, make_user):
    """Signed-in lookups do not require an approved account."""
    pending = await make_user("pending@example.com", is_active=False)
    r = await client.get("/api/auth/me", headers=auth_headers(pending))
    assert r.status_code == 200
    assert r.json()["user"]["is_active"] is False
