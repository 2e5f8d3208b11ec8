"""Health check endpoint.

Learn: Verifies the server is running and its dependencies are
reachable. The database is checked through the same get_db session
every other route uses; Redis reports "disabled" when the app was
started without it.
"""

import structlog
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate import __version__
from coursegate.db.engine import get_db
from coursegate.redis_client import get_redis, redis_available

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.warning("health.database_failed", error=str(e))
        checks["database"] = f"error: {e}"

    if not redis_available():
        checks["redis"] = "disabled"
    else:
        try:
            await get_redis().ping()
            checks["redis"] = "ok"
        except (RedisError, OSError) as e:
            logger.warning("health.redis_failed", error=str(e))
            checks["redis"] = f"error: {e}"

    healthy = checks["database"] == "ok" and checks["redis"] in ("ok", "disabled")
    return {"status": "healthy" if healthy else "degraded", **checks}
