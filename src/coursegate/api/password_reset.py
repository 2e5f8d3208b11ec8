"""Password reset API — capability-token authorization.

Learn: Neither endpoint needs a session. request always answers
{"success": true} so the response never reveals whether an email is
registered; confirm succeeds only for the holder of an unexpired token.
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.db.engine import get_db
from coursegate.errors import InvalidInput, handler_boundary
from coursegate.schemas.user import (
    PasswordResetConfirm,
    PasswordResetRequest,
    SuccessResponse,
)
from coursegate.services.mail import MailProvider, get_mail_provider
from coursegate.services.password_reset_service import (
    InvalidResetRequestError,
    InvalidResetTokenError,
    PasswordResetService,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/user/password-reset")


@router.post("/request", response_model=SuccessResponse)
async def request_reset(
    body: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
    mailer: MailProvider = Depends(get_mail_provider),
):
    """Mail a reset link when the email matches an account."""
    try:
        await PasswordResetService(db, mailer).request(body.email)
    except Exception as e:
        # The answer must not depend on what happened server-side.
        logger.error("password_reset.request_failed", error=str(e), exc_info=e)
    return SuccessResponse()


@router.post("/confirm", response_model=SuccessResponse)
@handler_boundary("Internal error")
async def confirm_reset(
    body: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
    mailer: MailProvider = Depends(get_mail_provider),
):
    """Set a new password using a reset token."""
    try:
        await PasswordResetService(db, mailer).confirm(body.token, body.password)
    except (InvalidResetRequestError, InvalidResetTokenError) as e:
        raise InvalidInput(str(e))
    return SuccessResponse()
