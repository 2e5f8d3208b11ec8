"""JWT session tokens.

Learn: The access token is the session. It carries the user id, email
and role so the Session Resolver can build an Identity without a
database round-trip; the Authorization Gate decides whether that is
enough or whether the stored record must be consulted.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from coursegate.config import settings

ACCESS = "access"
REQUIRED_CLAIMS = ("sub", "exp", "iat")


class TokenError(Exception):
    """Raised when a session token cannot be trusted."""


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_minutes: Optional[int] = None,
) -> str:
    issued = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "type": ACCESS,
        "iat": issued,
        "exp": issued + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Decode a session token and return its claims.

    Signature, expiry and the presence of sub/exp/iat are all enforced
    by PyJWT; anything it rejects surfaces as TokenError.
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": list(REQUIRED_CLAIMS)},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    if claims.get("type") != ACCESS:
        raise TokenError("Not an access token")
    return claims
