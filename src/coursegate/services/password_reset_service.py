"""Password reset — the capability-token half of the Authorization Gate.

Learn: A reset request stores a random 64-hex-char token and an expiry
on the user and mails a link containing the token. Confirming needs no
session: whoever holds an unexpired token may set a new password. The
token is cleared in the same commit that writes the new hash, so a
replay always fails.

request() never reveals whether the email exists: unknown addresses
return exactly like known ones.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.access import AccessContext, Deny, evaluate, valid_reset_token
from coursegate.auth.password import hash_password, password_too_short
from coursegate.config import settings
from coursegate.db.models import User, utcnow
from coursegate.events.store import EventStore, stream_key
from coursegate.events.types import PASSWORD_RESET_COMPLETED, PASSWORD_RESET_REQUESTED
from coursegate.services.mail import MailProvider, password_reset_message
from coursegate.services.user_directory import UserDirectory

logger = structlog.get_logger()


class InvalidResetRequestError(Exception):
    """Token or password missing, or password too short."""


class InvalidResetTokenError(Exception):
    """No user holds this token, or it has expired."""


def new_reset_token() -> str:
    return secrets.token_hex(32)


class PasswordResetService:
    def __init__(self, db: AsyncSession, mailer: MailProvider):
        self.db = db
        self.mailer = mailer
        self.events = EventStore(db)

    async def request(self, email: Optional[str], now: Optional[datetime] = None) -> None:
        if not email:
            return
        user = await UserDirectory(self.db).get_by_email(email)
        if user is None:
            logger.info("password_reset.unknown_email")
            return

        now = now or utcnow()
        token = new_reset_token()
        user.reset_password_token = token
        user.reset_password_expires = now + timedelta(
            minutes=settings.password_reset_expire_minutes
        )
        await self.events.append(
            stream_id=stream_key("user", user.id),
            event_type=PASSWORD_RESET_REQUESTED,
            data={"email": user.email},
        )
        await self.db.commit()

        reset_url = f"{settings.public_base_url.rstrip('/')}/reset-password/{token}"
        subject, body = password_reset_message(reset_url)
        await self.mailer.send(user.email, subject, body)
        logger.info("password_reset.requested", user_id=str(user.id))

    async def find_by_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.reset_password_token == token)
        )
        return result.scalars().first()

    async def confirm(
        self,
        token: Optional[str],
        password: Optional[str],
        now: Optional[datetime] = None,
    ) -> User:
        """Set a new password for the token holder and burn the token."""
        if not token or not password or password_too_short(password):
            raise InvalidResetRequestError("Invalid request")

        ctx = AccessContext(user=await self.find_by_token(token), now=now or utcnow())
        decision = evaluate(ctx, valid_reset_token())
        if isinstance(decision, Deny):
            raise InvalidResetTokenError(decision.message)

        user = ctx.user
        user.password_hash = hash_password(password)
        user.reset_password_token = None
        user.reset_password_expires = None
        await self.events.append(
            stream_id=stream_key("user", user.id),
            event_type=PASSWORD_RESET_COMPLETED,
            data={"email": user.email},
        )
        await self.db.commit()
        logger.info("password_reset.completed", user_id=str(user.id))
        return user
