"""Authorization Gate predicates, evaluated without HTTP or a database.

Learn: Predicates only look at the AccessContext, so a plain User
instance (never added to a session) is enough to drive them.
"""

from datetime import datetime, timedelta, timezone

from coursegate.auth.access import (
    ALLOW,
    AccessContext,
    Deny,
    DenyReason,
    Identity,
    active_account,
    authenticated,
    evaluate,
    role_is,
    stored_role_is,
    valid_reset_token,
)
from coursegate.db.models import User

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _identity(role="user"):
    return Identity(user_id="u-1", email="a@example.com", role=role)


def _user(role="user", is_active=True, token=None, expires=None):
    return User(
        email="a@example.com",
        password_hash="x",
        first_name="A",
        last_name="B",
        role=role,
        is_active=is_active,
        reset_password_token=token,
        reset_password_expires=expires,
    )


# ─── Role-based ──────────────────────────────────────────


def test_authenticated_denies_anonymous():
    decision = authenticated()(AccessContext())
    assert isinstance(decision, Deny)
    assert decision.status_code == 401
    assert decision.reason == DenyReason.UNAUTHORIZED


def test_authenticated_allows_identity():
    assert authenticated()(AccessContext(identity=_identity())) == ALLOW


def test_role_is_uses_session_role():
    check = role_is("admin", status_code=401, message="Unauthorized")
    assert check(AccessContext(identity=_identity("admin"))) == ALLOW

    decision = check(AccessContext(identity=_identity("user")))
    assert decision == Deny(DenyReason.FORBIDDEN, 401, "Unauthorized")


def test_stored_role_ignores_token_role():
    """An admin token whose stored record is a plain user is denied."""
    ctx = AccessContext(identity=_identity("admin"), user=_user(role="user"))
    decision = stored_role_is("admin")(ctx)
    assert isinstance(decision, Deny)
    assert decision.status_code == 403


def test_stored_role_denies_missing_record():
    ctx = AccessContext(identity=_identity("admin"), user=None)
    assert isinstance(stored_role_is("admin")(ctx), Deny)


def test_active_account():
    assert active_account()(AccessContext(user=_user(is_active=True))) == ALLOW
    assert active_account()(AccessContext(user=None)) == ALLOW

    decision = active_account()(AccessContext(user=_user(is_active=False)))
    assert decision.message == "Account is not active"
    assert decision.status_code == 403


# ─── Capability token ────────────────────────────────────


def test_valid_reset_token_allows_unexpired():
    user = _user(token="t" * 64, expires=NOW + timedelta(minutes=5))
    assert valid_reset_token()(AccessContext(user=user, now=NOW)) == ALLOW


def test_valid_reset_token_denies_expired():
    user = _user(token="t" * 64, expires=NOW - timedelta(seconds=1))
    decision = valid_reset_token()(AccessContext(user=user, now=NOW))
    assert decision == Deny(DenyReason.INVALID_TOKEN, 400, "Invalid or expired token")


def test_valid_reset_token_denies_expiry_equal_to_now():
    user = _user(token="t" * 64, expires=NOW)
    assert isinstance(valid_reset_token()(AccessContext(user=user, now=NOW)), Deny)


def test_valid_reset_token_accepts_naive_expiry():
    """SQLite hands datetimes back without tzinfo; they are read as UTC."""
    naive = (NOW + timedelta(minutes=5)).replace(tzinfo=None)
    user = _user(token="t" * 64, expires=naive)
    assert valid_reset_token()(AccessContext(user=user, now=NOW)) == ALLOW


def test_valid_reset_token_denies_unknown_token():
    assert isinstance(valid_reset_token()(AccessContext(user=None, now=NOW)), Deny)


# ─── Composition ─────────────────────────────────────────


def test_evaluate_first_deny_wins():
    ctx = AccessContext()
    decision = evaluate(
        ctx,
        authenticated(message="first"),
        role_is("admin", message="second"),
    )
    assert decision.message == "first"


def test_evaluate_all_allow():
    ctx = AccessContext(identity=_identity("admin"), user=_user(role="admin"))
    assert evaluate(ctx, authenticated(), role_is("admin"), stored_role_is("admin"), active_account()) == ALLOW


def test_evaluate_no_predicates_allows():
    assert evaluate(AccessContext()) == ALLOW
