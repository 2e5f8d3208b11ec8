"""Error taxonomy and the uniform error envelope.

Learn: Every failure a handler can produce is an ApiError with a status
code, a message and the envelope field it is reported under. Admin
user-management endpoints answer {"message": ...}; everything else
answers {"error": ...}. The global handlers registered here turn those
exceptions into JSON so routes never build error responses by hand.
"""

import functools

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class ApiError(Exception):
    """Base error rendered as {field: message} with status_code."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, field: str = "error"):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)


class InvalidInput(ApiError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"


class Internal(ApiError):
    status_code = 500
    default_message = "Internal server error"


def error_for_status(status_code: int, message: str, field: str = "error") -> ApiError:
    """Build the ApiError subclass matching a status code."""
    for cls in (InvalidInput, Unauthorized, Forbidden, NotFound, Conflict):
        if cls.status_code == status_code:
            return cls(message, field=field)
    err = ApiError(message, field=field)
    err.status_code = status_code
    return err


def handler_boundary(message: str = "Internal server error", field: str = "error"):
    """Map unexpected failures inside a route to Internal.

    ApiError and HTTPException pass through untouched; anything else is
    logged and replaced by a generic 500 so store/provider details never
    leak to the caller.
    """

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except (ApiError, HTTPException):
                raise
            except Exception as e:
                logger.error(
                    "handler.failed",
                    handler=fn.__name__,
                    error=str(e),
                    exc_info=e,
                )
                raise Internal(message, field=field) from e

        return wrapper

    return decorator


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ApiError)
    async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={exc.field: exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = []
        for error in exc.errors():
            loc = ".".join(str(x) for x in error.get("loc", ())) or "body"
            details.append(f"{loc}: {error.get('msg', 'invalid')}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": details},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions — always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )
