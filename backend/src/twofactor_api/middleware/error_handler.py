"""Global error handling to prevent information disclosure."""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from twofactor_api.config import get_settings
from twofactor_api.exceptions import (
    AuthenticationError,
    NotFoundError,
    TwoFactorAlreadyEnabledError,
    TwoFactorAPIError,
    TwoFactorLockedError,
    TwoFactorStateError,
)
from twofactor_api.utils.secure_logging import log_error

logger = logging.getLogger(__name__)

# Checked in order; the first matching base class wins
DOMAIN_STATUS_CODES: list[tuple[type[TwoFactorAPIError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (TwoFactorAlreadyEnabledError, status.HTTP_409_CONFLICT),
    (TwoFactorStateError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (TwoFactorLockedError, status.HTTP_423_LOCKED),
]

# Safe error messages that can be shown to users
SAFE_ERROR_MESSAGES = {
    400: "Invalid request",
    401: "Authentication required",
    403: "Access denied",
    404: "Resource not found",
    405: "Method not allowed",
    409: "Conflict with existing resource",
    422: "Invalid input data",
    423: "Account temporarily locked",
    429: "Too many requests",
    500: "Internal server error",
}

# Error messages that are safe to pass through
ALLOWED_ERROR_PATTERNS = [
    "Authentication required",
    "Access denied",
    "Admin access required",
    "Resource not found",
    "User not found",
    "Invalid or expired token",
    "Invalid token type",
    "Invalid password",
    "Invalid verification code",
    "Two-factor authentication is not set up",
    "Two-factor authentication is already enabled",
    "Two-factor authentication is not enabled",
    "Account temporarily locked",
]


def _get_cors_headers(request: Request) -> dict[str, str]:
    """Get CORS headers for error responses.

    Exception handlers run outside the CORS middleware, so allowed origins
    must be echoed here as well.
    """
    origin = request.headers.get("origin")
    if origin and origin in get_settings().cors_origins_list:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return {}


def is_safe_error_message(message: str) -> bool:
    """Check if an error message is safe to expose to users."""
    message_lower = message.lower()
    return any(pattern.lower() in message_lower for pattern in ALLOWED_ERROR_PATTERNS)


def sanitize_error_detail(detail: Any, status_code: int) -> str:
    """Sanitize error detail to prevent information disclosure.

    Args:
        detail: Original error detail
        status_code: HTTP status code

    Returns:
        Safe error message
    """
    if isinstance(detail, str):
        if is_safe_error_message(detail):
            return detail
    elif isinstance(detail, list):
        # Validation errors: field name and message only
        safe_errors = []
        for error in detail:
            if isinstance(error, dict):
                loc = error.get("loc", [])
                msg = error.get("msg", "Invalid value")
                field = loc[-1] if loc else "field"
                if isinstance(field, str) and not field.startswith("_"):
                    safe_errors.append(f"{field}: {msg}")
        if safe_errors:
            return "; ".join(safe_errors[:3])

    return SAFE_ERROR_MESSAGES.get(status_code, "Request failed")


def status_code_for(exc: TwoFactorAPIError) -> int:
    """Map a domain error to its HTTP status code."""
    for error_type, status_code in DOMAIN_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def two_factor_exception_handler(request: Request, exc: TwoFactorAPIError) -> JSONResponse:
    """Handle domain errors raised by the service layer.

    Args:
        request: FastAPI request
        exc: Domain exception

    Returns:
        JSONResponse with mapped status and sanitized message
    """
    status_code = status_code_for(exc)
    headers = _get_cors_headers(request)

    if isinstance(exc, TwoFactorLockedError):
        headers["Retry-After"] = str(exc.retry_after_seconds)

    content: dict[str, Any] = {
        "detail": exc.message if get_settings().debug else sanitize_error_detail(exc.message, status_code)
    }
    if isinstance(exc, TwoFactorLockedError):
        content["retry_after_seconds"] = exc.retry_after_seconds

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with sanitized messages."""
    headers = _get_cors_headers(request)
    if exc.headers:
        headers.update(exc.headers)

    detail = exc.detail if get_settings().debug else sanitize_error_detail(exc.detail, exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail},
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle validation exceptions with sanitized messages.

    Request bodies carry passwords and codes, so only field names and
    messages are logged.
    """
    errors = exc.errors()
    fields = [".".join(str(part) for part in error.get("loc", [])) for error in errors]
    logger.warning(f"Validation error for {request.url.path}: {fields}")

    if get_settings().debug:
        detail: Any = [
            {"loc": error.get("loc"), "msg": error.get("msg"), "type": error.get("type")}
            for error in errors
        ]
    else:
        detail = sanitize_error_detail(errors, status.HTTP_422_UNPROCESSABLE_ENTITY)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": detail},
        headers=_get_cors_headers(request),
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy exceptions without leaking database details."""
    log_error(logger, f"Database error for {request.url.path}", exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred"},
        headers=_get_cors_headers(request),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking information."""
    log_error(logger, f"Unhandled exception for {request.url.path}", exc)

    if get_settings().debug:
        content = {"detail": str(exc), "type": type(exc).__name__}
    else:
        content = {"detail": SAFE_ERROR_MESSAGES[500]}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_get_cors_headers(request),
    )
