"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Authorization is declared per route through gate dependencies
(session_admin, content_admin, active_user, ...) rather than per router,
because neighbouring routes under /admin use different gates and
different error envelopes.
"""

from fastapi import APIRouter

from coursegate.api.admin_content import router as admin_content_router
from coursegate.api.admin_users import router as admin_users_router
from coursegate.api.auth import router as auth_router
from coursegate.api.course import router as course_router
from coursegate.api.health import router as health_router
from coursegate.api.password_reset import router as password_reset_router
from coursegate.api.quiz import router as quiz_router
from coursegate.api.webhooks import router as webhooks_router

api_router = APIRouter(prefix="/api")

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(password_reset_router, tags=["auth"])
api_router.include_router(webhooks_router, tags=["webhooks"])

# Gated routes
api_router.include_router(admin_users_router, tags=["admin"])
api_router.include_router(admin_content_router, tags=["admin", "content"])
api_router.include_router(course_router, tags=["course"])
api_router.include_router(quiz_router, tags=["quiz"])
