"""Pydantic schemas for accounts, login and admin user management.

Learn: Request bodies are deliberately lenient (every field Optional):
the services validate presence and length themselves so callers get
the platform's own messages ("All fields are required", ...) instead of
a generic validation error.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


# ─── Requests ───────────────────────────────────────────

class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: Optional[str] = None


class PasswordResetConfirm(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


class ApprovalRequest(BaseModel):
    user_id: Optional[str] = None
    approve: Optional[bool] = None


# ─── Responses ──────────────────────────────────────────

class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    verification_status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RegisterResponse(BaseModel):
    message: str
    email: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class UserEnvelope(BaseModel):
    user: UserRead


class UserList(BaseModel):
    users: list[UserRead]


class ApprovalResponse(BaseModel):
    message: str
    user: Optional[UserRead] = None


class AdminStats(BaseModel):
    total_users: int
    active_users: int
    pending_users: int
    collections: dict[str, int]


class SuccessResponse(BaseModel):
    success: bool = True
