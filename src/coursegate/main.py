"""FastAPI application factory.

Learn: create_app() returns a configured FastAPI instance. The lifespan
owns the process-wide resources: the database engine is created once
at startup and disposed at shutdown, and Redis is connected when
available (the app runs without it, minus rate limiting).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from coursegate import __version__
from coursegate.api import api_router
from coursegate.config import settings
from coursegate.db.engine import create_tables, dispose_engine, init_engine
from coursegate.errors import setup_error_handlers
from coursegate.logging_config import configure_logging
from coursegate.middleware.rate_limit import RateLimitMiddleware
from coursegate.middleware.request_id import RequestIdMiddleware
from coursegate.middleware.security import SecurityHeadersMiddleware
from coursegate.redis_client import close_redis, get_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "coursegate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    init_engine()
    if settings.auto_create_tables:
        await create_tables()
        logger.info("coursegate.tables_created")

    if settings.redis_url:
        try:
            await init_redis(settings.redis_url)
            await get_redis().ping()
            logger.info("coursegate.redis_connected", url=settings.redis_url)
        except (RedisError, OSError) as e:
            logger.warning("coursegate.redis_unavailable", error=str(e))
            await close_redis()

    yield

    logger.info("coursegate.shutdown")
    await close_redis()
    await dispose_engine()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title="Coursegate",
        description="Course platform backend: courses, quizzes, user documents and admin workflows",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
        webhook_rpm=settings.rate_limit_webhook_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    setup_error_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: coursegate.main:app)
app = create_app()
