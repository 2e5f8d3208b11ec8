"""User Directory — email/id → stored user record, and account lifecycle.

Learn: Every authorization decision that needs more than the session
token (active flag, stored role, ownership) goes through here. The
directory also owns registration, admin approval/rejection and the
statistics shown on the admin dashboard.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.password import hash_password, password_too_short, verify_password
from coursegate.config import settings
from coursegate.db.models import (
    MODEL_REGISTRY,
    QuizBlueprint,
    QuizQuestion,
    QuizResult,
    QuizSession,
    User,
    UserCaseProfile,
    UserIntake,
    UserProcessedDocument,
    VideoProgress,
)
from coursegate.events.store import EventStore, stream_key
from coursegate.events.types import (
    ADMIN_CREATED,
    USER_APPROVED,
    USER_REGISTERED,
    USER_REJECTED,
)

logger = structlog.get_logger()


class RegistrationError(Exception):
    """Registration payload rejected (missing field, short password, duplicate)."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


def parse_user_id(value: str) -> Optional[uuid.UUID]:
    """Parse a user id from a path/body value; None when malformed."""
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


class UserDirectory:
    """Lookups and lifecycle operations on the users collection."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = EventStore(db)

    # ─── Lookups ────────────────────────────────────────

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalars().first()

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, else None."""
        user = await self.get_by_email(email)
        if not user or not verify_password(password.strip(), user.password_hash):
            return None
        return user

    # ─── Registration ───────────────────────────────────

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> User:
        """Create a pending (inactive) account awaiting admin approval."""
        if not email or not password or not first_name or not last_name:
            raise RegistrationError("All fields are required")
        if password_too_short(password):
            raise RegistrationError(
                f"Password must be at least {settings.password_min_length} characters long"
            )
        if await self.get_by_email(email):
            raise RegistrationError("A user with this email already exists")

        user = User(
            email=normalize_email(email),
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            role="user",
            is_active=False,
        )
        self.db.add(user)
        await self.db.flush()

        await self.events.append(
            stream_id=stream_key("user", user.id),
            event_type=USER_REGISTERED,
            data={"email": user.email},
        )
        await self.db.commit()
        logger.info("user.registered", user_id=str(user.id), email=user.email)
        return user

    async def create_admin(
        self,
        *,
        email: str,
        password: str,
        first_name: str = "Admin",
        last_name: str = "User",
    ) -> User:
        """Create an active admin, or promote and activate an existing account."""
        user = await self.get_by_email(email)
        if user is None:
            user = User(
                email=normalize_email(email),
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
            )
            self.db.add(user)
        else:
            user.password_hash = hash_password(password)
        user.role = "admin"
        user.is_active = True
        await self.db.flush()

        await self.events.append(
            stream_id=stream_key("user", user.id),
            event_type=ADMIN_CREATED,
            data={"email": user.email},
        )
        await self.db.commit()
        return user

    # ─── Admin workflows ────────────────────────────────

    async def list_pending(self) -> list[User]:
        """Inactive non-admin accounts, newest first.

        Not paginated: the whole backlog is returned in one response.
        """
        result = await self.db.execute(
            select(User)
            .where(User.role == "user", User.is_active.is_(False))
            .order_by(User.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def approve(self, user_id: uuid.UUID, *, actor: str) -> Optional[User]:
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        user.is_active = True
        await self.events.append(
            stream_id=stream_key("user", user.id),
            event_type=USER_APPROVED,
            data={"email": user.email},
            metadata={"actor": actor},
        )
        await self.db.commit()
        logger.info("user.approved", user_id=str(user.id), email=user.email, actor=actor)
        return user

    async def reject(self, user_id: uuid.UUID, *, actor: str) -> Optional[User]:
        """Reject a registration by deleting the account and everything it owns.

        An admin may already have attached documents to a pending account,
        so owned rows are removed first, children before parents.
        """
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        await self._delete_owned_rows(user_id)
        await self.db.delete(user)
        await self.events.append(
            stream_id=stream_key("user", user_id),
            event_type=USER_REJECTED,
            data={"email": user.email},
            metadata={"actor": actor},
        )
        await self.db.commit()
        logger.info("user.rejected", user_id=str(user_id), email=user.email, actor=actor)
        return user

    async def _delete_owned_rows(self, user_id: uuid.UUID) -> None:
        session_ids = select(QuizSession.id).where(QuizSession.user_id == user_id)
        await self.db.execute(
            delete(QuizResult).where(QuizResult.session_id.in_(session_ids))
        )
        for model in (
            QuizSession,
            QuizQuestion,
            QuizBlueprint,
            UserIntake,
            UserCaseProfile,
            UserProcessedDocument,
            VideoProgress,
        ):
            await self.db.execute(delete(model).where(model.user_id == user_id))

    async def stats(self) -> dict:
        total = await self._count(select(func.count()).select_from(User))
        active = await self._count(
            select(func.count()).select_from(User).where(User.is_active.is_(True))
        )
        collections = {}
        for name, model in MODEL_REGISTRY.items():
            collections[name] = await self._count(select(func.count()).select_from(model))
        return {
            "total_users": total,
            "active_users": active,
            "pending_users": total - active,
            "collections": collections,
        }

    async def _count(self, query) -> int:
        result = await self.db.execute(query)
        return int(result.scalar_one())
