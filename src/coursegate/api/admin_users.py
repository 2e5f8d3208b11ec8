"""Admin API — user management.

Learn: These endpoints trust the role carried by the session token.
Anonymous and non-admin callers both get 401 {"message": "Unauthorized"},
and every error here uses the "message" envelope field.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.auth.access import AccessContext
from coursegate.auth.dependencies import session_admin
from coursegate.db.engine import get_db
from coursegate.errors import InvalidInput, NotFound, handler_boundary
from coursegate.schemas.user import AdminStats, ApprovalRequest, ApprovalResponse, UserList, UserRead
from coursegate.services.user_directory import UserDirectory, parse_user_id

router = APIRouter(prefix="/admin")


@router.get("/users/pending", response_model=UserList)
@handler_boundary("Failed to fetch pending users", field="message")
async def list_pending_users(
    ctx: AccessContext = Depends(session_admin),
    db: AsyncSession = Depends(get_db),
):
    """Accounts awaiting approval, newest first (whole backlog, no paging)."""
    users = await UserDirectory(db).list_pending()
    return UserList(users=[UserRead.model_validate(u) for u in users])


@router.get("/users", response_model=UserList)
@handler_boundary("Failed to fetch users", field="message")
async def list_users(
    ctx: AccessContext = Depends(session_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await UserDirectory(db).list_all()
    return UserList(users=[UserRead.model_validate(u) for u in users])


@router.post("/users/approve", response_model=ApprovalResponse, response_model_exclude_none=True)
@handler_boundary("Failed to update user status", field="message")
async def approve_user(
    body: ApprovalRequest,
    ctx: AccessContext = Depends(session_admin),
    db: AsyncSession = Depends(get_db),
):
    """Approve (activate) or reject (delete) a pending registration."""
    if not body.user_id or body.approve is None:
        raise InvalidInput("User ID and approval status are required", field="message")
    user_id = parse_user_id(body.user_id)
    if user_id is None:
        raise InvalidInput("Invalid user ID", field="message")

    directory = UserDirectory(db)
    actor = ctx.identity.email
    if body.approve:
        user = await directory.approve(user_id, actor=actor)
        if user is None:
            raise NotFound("User not found", field="message")
        return ApprovalResponse(
            message="User approved successfully",
            user=UserRead.model_validate(user),
        )

    user = await directory.reject(user_id, actor=actor)
    if user is None:
        raise NotFound("User not found", field="message")
    return ApprovalResponse(message="User rejected and removed from system")


@router.get("/stats", response_model=AdminStats)
@handler_boundary("Failed to fetch statistics", field="message")
async def admin_stats(
    ctx: AccessContext = Depends(session_admin),
    db: AsyncSession = Depends(get_db),
):
    return AdminStats(**await UserDirectory(db).stats())
