"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (aiosqlite). StaticPool
   keeps the single connection alive so every session sees the same
   database, and the tables are created from MODEL_REGISTRY.
   Foreign keys are switched on per connection, as PostgreSQL always
   enforces them.
2. The app's get_db dependency is overridden to yield the test session,
   so data seeded by a test is visible to the routes it calls.
3. No lifespan runs under ASGITransport: Redis is never initialised, so
   the rate limiter is a no-op, and mail goes to an in-memory outbox.

Tests authenticate with real JWTs minted by create_access_token, so the
full Session Resolver → gate pipeline is exercised on every request.
"""

import os

os.environ.setdefault("COURSEGATE_BCRYPT_ROUNDS", "4")
os.environ.setdefault("COURSEGATE_JWT_SECRET", "test-secret-with-at-least-thirty-two-bytes")
os.environ.setdefault("COURSEGATE_MUX_WEBHOOK_SECRET", "")

from datetime import datetime
from typing import Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from coursegate.auth.jwt import create_access_token
from coursegate.auth.password import hash_password
from coursegate.db.engine import create_tables, get_db
from coursegate.db.models import Chapter, Course, User, Video
from coursegate.main import app
from coursegate.services.mail import LogMailProvider, get_mail_provider

TEST_DB_URL = "sqlite+aiosqlite://"
DEFAULT_PASSWORD = "secret123"


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a brand-new in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enforce_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await create_tables(engine)
    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def mailer():
    return LogMailProvider()


@pytest_asyncio.fixture()
async def client(db_session, mailer):
    """HTTP client with get_db and the mail provider overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mail_provider] = lambda: mailer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Seeding helpers ─────────────────────────────────────


@pytest_asyncio.fixture()
async def make_user(db_session):
    """Factory: insert a user straight into the store.

    Learn: Bypasses registration so tests can set role, active flag and
    created_at explicitly.
    """
    counter = {"n": 0}

    async def _make(
        email: Optional[str] = None,
        *,
        role: str = "user",
        is_active: bool = True,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Test",
        last_name: str = "User",
        created_at: Optional[datetime] = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=is_active,
        )
        if created_at is not None:
            user.created_at = created_at
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


def auth_headers(user: User, role: Optional[str] = None) -> dict:
    """Bearer header for `user`; `role` overrides the role in the token."""
    token = create_access_token(str(user.id), user.email, role or user.role)
    return {"Authorization": f"Bearer {token}"}


def token_headers(email: str, role: str = "user", user_id: str = "00000000-0000-0000-0000-000000000001") -> dict:
    """Bearer header for an identity that need not exist in the store."""
    token = create_access_token(user_id, email, role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def admin(make_user):
    return await make_user("admin@example.com", role="admin")


@pytest_asyncio.fixture()
async def learner(make_user):
    return await make_user("learner@example.com")


@pytest_asyncio.fixture()
async def course_with_video(db_session):
    """One active course → chapter → video (100s long, ready to play)."""
    course = Course(title="Driving fitness", description="Preparation course")
    db_session.add(course)
    await db_session.flush()
    chapter = Chapter(
        course_id=course.id,
        module_key="alcohol_drugs",
        title="Alcohol basics",
        description="Limits and consequences",
        order=1,
    )
    db_session.add(chapter)
    await db_session.flush()
    video = Video(
        chapter_id=chapter.id,
        title="Blood alcohol limits",
        description="What the numbers mean",
        asset_id="asset-1",
        playback_id="play-1",
        duration=100.0,
        order=1,
        status="ready",
    )
    db_session.add(video)
    await db_session.commit()
    return course, chapter, video
