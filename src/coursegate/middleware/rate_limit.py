"""Rate limiting middleware — Redis fixed-window counters.

Learn: One counter per client IP, bucket and minute, stored under
"coursegate:rl:{ip}:{bucket}:{minute}". Three buckets:
- auth: login, registration and password reset (brute-force target)
- webhook: the video host callback
- api: everything else

When Redis was never initialised (local runs, tests) the middleware is
a no-op; a Redis error mid-request lets the request through.
"""

import time

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from coursegate.redis_client import get_redis, redis_available

logger = structlog.get_logger()

AUTH_PATHS = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/user/password-reset/",
)
WEBHOOK_PATHS = ("/api/webhooks/",)


def bucket_for(path: str) -> str:
    if path.startswith(AUTH_PATHS):
        return "auth"
    if path.startswith(WEBHOOK_PATHS):
        return "webhook"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10, webhook_rpm: int = 60):
        super().__init__(app)
        self.limits = {"api": default_rpm, "auth": auth_rpm, "webhook": webhook_rpm}

    async def dispatch(self, request: Request, call_next) -> Response:
        if not redis_available():
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket = bucket_for(request.url.path)
        rpm = self.limits[bucket]
        window = int(time.time() // 60)
        key = f"coursegate:rl:{client_ip}:{bucket}:{window}"

        try:
            redis = get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except RedisError as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests"},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
