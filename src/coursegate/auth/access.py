"""Authorization Gate — AccessDecision and composable predicates.

Learn: Two gating strategies coexist on this platform:

1. Role-based: admin endpoints check the caller's role (from the session
   token, or from the stored user record) and the active flag.
2. Capability-token-based: password reset has no session at all; owning
   an unexpired single-use token *is* the authorization.

Both are expressed as predicates returning the same AccessDecision
(Allow | Deny), so handlers compose whichever predicates an endpoint
needs and every denial flows through one response contract.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from coursegate.db.models import User, as_utc


class DenyReason(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INVALID_TOKEN = "invalid_token"


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as resolved from the session token."""

    user_id: str
    email: str
    role: str


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    status_code: int
    message: str


AccessDecision = Union[Allow, Deny]
ALLOW = Allow()


@dataclass
class AccessContext:
    """Everything a predicate may look at.

    identity is None for anonymous requests. user is the stored record
    when the endpoint asked for it (by session email, or by capability
    token for password reset).
    """

    identity: Optional[Identity] = None
    user: Optional[User] = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Predicate = Callable[[AccessContext], AccessDecision]


# ─── Predicates ──────────────────────────────────────────


def authenticated(message: str = "Unauthorized") -> Predicate:
    """Deny anonymous callers."""

    def check(ctx: AccessContext) -> AccessDecision:
        if ctx.identity is None:
            return Deny(DenyReason.UNAUTHORIZED, 401, message)
        return ALLOW

    return check


def role_is(role: str, *, status_code: int = 403, message: str = "Forbidden") -> Predicate:
    """Session role must equal `role`."""

    def check(ctx: AccessContext) -> AccessDecision:
        if ctx.identity is None or ctx.identity.role != role:
            return Deny(DenyReason.FORBIDDEN, status_code, message)
        return ALLOW

    return check


def stored_role_is(role: str, *, status_code: int = 403, message: str = "Forbidden") -> Predicate:
    """The stored user record (not the token) must carry `role`."""

    def check(ctx: AccessContext) -> AccessDecision:
        if ctx.user is None or ctx.user.role != role:
            return Deny(DenyReason.FORBIDDEN, status_code, message)
        return ALLOW

    return check


def active_account(message: str = "Account is not active") -> Predicate:
    """Deny stored users whose is_active flag is false.

    A missing record passes; endpoints that need the record report that
    as NotFound separately.
    """

    def check(ctx: AccessContext) -> AccessDecision:
        if ctx.user is not None and not ctx.user.is_active:
            return Deny(DenyReason.FORBIDDEN, 403, message)
        return ALLOW

    return check


def valid_reset_token(message: str = "Invalid or expired token") -> Predicate:
    """Capability check: the token matched a user and has not expired."""

    def check(ctx: AccessContext) -> AccessDecision:
        user = ctx.user
        if user is None or user.reset_password_token is None:
            return Deny(DenyReason.INVALID_TOKEN, 400, message)
        expires = as_utc(user.reset_password_expires)
        if expires is None or expires <= ctx.now:
            return Deny(DenyReason.INVALID_TOKEN, 400, message)
        return ALLOW

    return check


def evaluate(ctx: AccessContext, *predicates: Predicate) -> AccessDecision:
    """Run predicates in order; the first Deny wins."""
    for predicate in predicates:
        decision = predicate(ctx)
        if isinstance(decision, Deny):
            return decision
    return ALLOW
