"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from twofactor_api import __version__
from twofactor_api.config import get_settings
from twofactor_api.exceptions import TwoFactorAPIError
from twofactor_api.middleware.error_handler import (
    generic_exception_handler,
    http_exception_handler,
    sqlalchemy_exception_handler,
    two_factor_exception_handler,
    validation_exception_handler,
)
from twofactor_api.middleware.security_headers import SecurityHeadersMiddleware
from twofactor_api.routers import admin_two_factor, two_factor
from twofactor_api.security.rate_limit import limiter

logger = logging.getLogger(__name__)


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Rate limit handler returning RFC 7807 Problem Details.

    Includes Retry-After header per RFC 6585 Section 4.
    """
    return JSONResponse(
        status_code=429,
        content={
            "type": "https://datatracker.ietf.org/doc/html/rfc6585#section-4",
            "title": "Too many requests",
            "status": 429,
            "detail": "Rate limit exceeded",
            "instance": request.url.path,
        },
        headers={
            "Content-Type": "application/problem+json",
            "Retry-After": "60",
        },
    )


def _allowed_origins() -> list[str]:
    """Validate configured CORS origins."""
    config = get_settings()
    allowed_origins = []
    for origin in config.cors_origins_list:
        # Wildcards are not allowed with credentials
        if origin == "*":
            raise ValueError(
                "CORS_ORIGINS cannot contain '*' wildcard when allow_credentials=True. "
                "Specify explicit origins."
            )
        if origin.startswith(("http://", "https://")):
            allowed_origins.append(origin)
        else:
            logger.warning(f"Ignoring invalid CORS origin: {origin}")

    if not allowed_origins and config.environment == "production":
        raise ValueError(
            "CORS_ORIGINS must be set in production. "
            "Example: CORS_ORIGINS=https://erp.example.com"
        )
    return allowed_origins


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_settings()

    app = FastAPI(
        title=config.app_name,
        version=__version__,
        description="Two-factor authentication API",
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Sanitized error handlers
    app.add_exception_handler(TwoFactorAPIError, two_factor_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Middleware runs in reverse order of addition: CORS first on requests
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.include_router(two_factor.router, prefix="/api/v1/auth/2fa", tags=["Two-Factor Authentication"])
    app.include_router(
        admin_two_factor.router,
        prefix="/api/v1/admin/2fa",
        tags=["Two-Factor Administration"],
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
