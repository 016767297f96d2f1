"""Authentication and authorization utilities."""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from twofactor_api.config import get_settings
from twofactor_api.models.domain.user import AuthenticatedUser, UserRole

ACCESS_TOKEN_TYPE = "access"
CHALLENGE_TOKEN_TYPE = "two_factor_challenge"
RESET_TOKEN_TYPE = "two_factor_reset"


def create_access_token(user_id: UUID, username: str, role: UserRole = UserRole.USER) -> str:
    """Create a JWT access token.

    Args:
        user_id: User UUID
        username: Username
        role: Caller role

    Returns:
        JWT token string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role.value,
        "type": ACCESS_TOKEN_TYPE,
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
        "iat": now,
    }

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_challenge_token(user_id: UUID) -> str:
    """Create a short-lived token proving the password step of a login passed.

    The login flow hands it to the client, which exchanges it together with
    a TOTP or backup code at the verify endpoint.

    Args:
        user_id: User UUID

    Returns:
        JWT token string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "type": CHALLENGE_TOKEN_TYPE,
        "exp": now + timedelta(minutes=settings.two_factor_challenge_minutes),
        "iat": now,
    }

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_reset_token(user_id: UUID) -> str:
    """Create a token for the account recovery flow of a user who lost their authenticator.

    Args:
        user_id: User UUID

    Returns:
        JWT token string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "type": RESET_TOKEN_TYPE,
        "exp": now + timedelta(minutes=settings.two_factor_reset_minutes),
        "iat": now,
    }

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict[str, Any]:
    """Decode and verify a JWT token.

    Args:
        token: JWT token string
        expected_type: Required value of the ``type`` claim

    Returns:
        Token payload

    Raises:
        HTTPException: If token is invalid, expired or of the wrong type
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from e

    if payload.get("type") != expected_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    return payload


def get_subject(payload: dict[str, Any]) -> UUID:
    """Extract the user ID from a token payload."""
    try:
        return UUID(payload["sub"])
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from e


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(HTTPBearer(auto_error=False))] = None,
) -> AuthenticatedUser:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials

    Returns:
        AuthenticatedUser domain model

    Raises:
        HTTPException: If authentication fails
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    payload = decode_token(credentials.credentials)

    try:
        role = UserRole(payload.get("role", UserRole.USER.value))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from e

    return AuthenticatedUser(
        id=get_subject(payload),
        username=payload.get("username", ""),
        role=role,
    )


async def require_admin(
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
) -> AuthenticatedUser:
    """Require the current user to have admin role.

    Raises:
        HTTPException: If user is not admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
