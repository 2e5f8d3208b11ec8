"""Auth API — registration, login and the current user.

Learn: Routes for account access:
- POST /auth/register → create a pending (inactive) account
- POST /auth/login → email/password → JWT access token
- GET /auth/me → the stored record behind the session

Registration answers errors as {"message": ...}; login and me use
{"error": ...}.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.access import AccessContext
from coursegate.auth.dependencies import signed_in_user
from coursegate.auth.jwt import create_access_token
from coursegate.db.engine import get_db
from coursegate.errors import Forbidden, InvalidInput, Unauthorized, handler_boundary
from coursegate.schemas.user import (
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserEnvelope,
    UserRead,
)
from coursegate.services.user_directory import RegistrationError, UserDirectory

router = APIRouter(prefix="/auth")


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
@handler_boundary("Registration failed. Please try again.", field="message")
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new account awaiting admin approval."""
    try:
        user = await UserDirectory(db).register(
            email=body.email or "",
            password=body.password or "",
            first_name=body.first_name or "",
            last_name=body.last_name or "",
        )
    except RegistrationError as e:
        raise InvalidInput(str(e), field="message")
    return RegisterResponse(
        message="Registration successful. Your account is pending admin approval.",
        email=user.email,
    )


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
@handler_boundary("Login failed")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password → JWT access token."""
    if not body.email or not body.password:
        raise InvalidInput("Email and password are required")

    user = await UserDirectory(db).authenticate(body.email, body.password)
    if user is None:
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Forbidden("Account is pending approval")

    token = create_access_token(str(user.id), user.email, user.role)
    return TokenResponse(access_token=token, user=UserRead.model_validate(user))


# ─── Current user ────────────────────────────────────────


@router.get("/me", response_model=UserEnvelope)
async def me(ctx: AccessContext = Depends(signed_in_user)):
    """Get the stored record of the authenticated caller."""
    return UserEnvelope(user=UserRead.model_validate(ctx.user))
