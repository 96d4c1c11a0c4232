"""
Application error taxonomy and the FastAPI handlers that render it.

Every error renders as {"error": <label>, "message": <text>}.
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from app.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal server error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.error


class AuthError(AppError):
    """Missing, malformed or invalid bearer token"""
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"


class ValidationError(AppError):
    """Missing or invalid request fields"""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid request"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class RoleError(AppError):
    """Stored role is neither rider nor driver"""
    status_code = status.HTTP_403_FORBIDDEN
    error = "Invalid role"


class UpstreamError(AppError):
    """Any failure from Clerk or Supabase"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Upstream service failure"


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request body"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": ValidationError.error, "message": message},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})


class UnhandledErrorMiddleware:
    """
    Renders unhandled exceptions as 500 JSON inside the user middleware stack,
    so CORS and security headers are still applied to the response.
    Must be added before any other middleware (innermost).
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking)
        except Exception as exc:
            if response_started:
                raise
            response = await unhandled_exception_handler(Request(scope), exc)
            await response(scope, receive, send)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    # last resort for errors raised inside middleware itself
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.add_middleware(UnhandledErrorMiddleware)
