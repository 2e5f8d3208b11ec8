"""FastAPI auth dependencies — Session Resolver and gate().

Learn: resolve_identity() turns the Authorization header into an
Identity or None. It never raises: a missing, malformed or expired token
is simply "anonymous", and it is up to the gate to say whether anonymous
is good enough.

gate(*predicates) builds a dependency that resolves the identity,
optionally loads the stored user record, evaluates the predicates and
raises the matching ApiError on the first Deny. Routes receive the
AccessContext and never build a denial response themselves.
"""

from typing import Optional

import structlog
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.access import (
    AccessContext,
    Deny,
    Identity,
    Predicate,
    active_account,
    authenticated,
    evaluate,
    role_is,
    stored_role_is,
)
from coursegate.auth.jwt import TokenError, verify_token
from coursegate.db.engine import get_db
from coursegate.errors import NotFound, error_for_status
from coursegate.services.user_directory import UserDirectory

logger = structlog.get_logger()


async def resolve_identity(
    authorization: Optional[str] = Header(None),
) -> Optional[Identity]:
    """Extract the caller's identity from a Bearer token (None = anonymous)."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    try:
        payload = verify_token(authorization[7:])
    except TokenError as e:
        logger.debug("session.invalid_token", error=str(e))
        return None
    return Identity(
        user_id=payload["sub"],
        email=payload.get("email", ""),
        role=payload.get("role", "user"),
    )


def gate(
    *predicates: Predicate,
    field: str = "error",
    load_user: bool = False,
    missing_user_message: Optional[str] = None,
):
    """Build a dependency enforcing `predicates` for one endpoint.

    load_user: look the stored record up by the session email so
    predicates can check the stored role/active flag.
    missing_user_message: when set, an authenticated caller without a
    stored record is answered with 404 and this message.
    """

    async def dependency(
        identity: Optional[Identity] = Depends(resolve_identity),
        db: AsyncSession = Depends(get_db),
    ) -> AccessContext:
        ctx = AccessContext(identity=identity)
        if load_user and identity is not None:
            ctx.user = await UserDirectory(db).get_by_email(identity.email)
            if ctx.user is None and missing_user_message:
                raise NotFound(missing_user_message, field=field)

        decision = evaluate(ctx, *predicates)
        if isinstance(decision, Deny):
            raise error_for_status(decision.status_code, decision.message, field)
        return ctx

    return dependency


# ─── Prebuilt gates ──────────────────────────────────────

# User-management admin endpoints trust the session role and answer
# 401 {"message": "Unauthorized"} for anonymous and non-admin callers alike.
session_admin = gate(
    authenticated(),
    role_is("admin", status_code=401, message="Unauthorized"),
    field="message",
)

# Content admin endpoints re-check the stored record.
content_admin = gate(
    authenticated(),
    stored_role_is("admin", message="Forbidden - Admin access required"),
    active_account(),
    load_user=True,
)

# Any signed-in caller with a stored record (profile lookups).
signed_in_user = gate(
    authenticated(),
    load_user=True,
    missing_user_message="User not found",
)

# Signed-in learner whose account has been approved.
active_user = gate(
    authenticated(),
    active_account(),
    load_user=True,
    missing_user_message="User not found",
)
