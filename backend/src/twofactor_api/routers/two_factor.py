"""Two-factor authentication router."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from twofactor_api.config import get_settings
from twofactor_api.dependencies import get_two_factor_service
from twofactor_api.exceptions import InvalidTokenError, UserNotFoundError
from twofactor_api.models.domain.user import AuthenticatedUser, UserRole
from twofactor_api.models.dto.two_factor import (
    MessageResponse,
    TwoFactorBackupCodesResponse,
    TwoFactorDisableRequest,
    TwoFactorEnableResponse,
    TwoFactorPasswordRequest,
    TwoFactorResetRequest,
    TwoFactorResetResponse,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
    TwoFactorTestRequest,
    TwoFactorTestResponse,
    TwoFactorTokenRequest,
    TwoFactorVerifyRequest,
    TwoFactorVerifyResponse,
)
from twofactor_api.security.auth import (
    CHALLENGE_TOKEN_TYPE,
    create_access_token,
    decode_token,
    get_current_user,
    get_subject,
)
from twofactor_api.security.rate_limit import API_DEFAULT_LIMIT, TWO_FACTOR_LIMIT, limiter
from twofactor_api.services.two_factor_service import TwoFactorService

router = APIRouter()


@router.get("/status", response_model=TwoFactorStatusResponse)
@limiter.limit(API_DEFAULT_LIMIT)
async def get_status(
    request: Request,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorStatusResponse:
    """Get 2FA status for the current user."""
    return await service.get_status(current_user.id)


@router.post("/setup", response_model=TwoFactorSetupResponse)
@limiter.limit(TWO_FACTOR_LIMIT)
async def setup(
    request: Request,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorSetupResponse:
    """Start 2FA setup.

    Returns the secret and QR code. 2FA stays disabled until a code is
    confirmed via /enable.
    """
    return await service.setup(current_user.id)


@router.post("/test", response_model=TwoFactorTestResponse)
@limiter.limit(TWO_FACTOR_LIMIT)
async def test_token(
    request: Request,
    body: TwoFactorTestRequest,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorTestResponse:
    """Check a code against a setup secret without saving anything."""
    return service.test_token(body.secret, body.token)


@router.post("/enable", response_model=TwoFactorEnableResponse)
@limiter.limit(TWO_FACTOR_LIMIT)
async def enable(
    request: Request,
    body: TwoFactorTokenRequest,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorEnableResponse:
    """Enable 2FA after confirming a code. Backup codes are returned once."""
    return await service.enable(current_user.id, body.token)


@router.post("/disable", response_model=MessageResponse)
@limiter.limit(TWO_FACTOR_LIMIT)
async def disable(
    request: Request,
    body: TwoFactorDisableRequest,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> MessageResponse:
    """Disable 2FA. Requires the current password."""
    return await service.disable(current_user.id, body.password, body.token)


@router.post("/backup-codes", response_model=TwoFactorBackupCodesResponse)
@limiter.limit(TWO_FACTOR_LIMIT)
async def regenerate_backup_codes(
    request: Request,
    body: TwoFactorPasswordRequest,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorBackupCodesResponse:
    """Replace all backup codes. Requires the current password."""
    return await service.regenerate_backup_codes(current_user.id, body.password)


@router.post("/verify", response_model=TwoFactorVerifyResponse)
@limiter.limit(TWO_FACTOR_LIMIT)
async def verify(
    request: Request,
    body: TwoFactorVerifyRequest,
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorVerifyResponse:
    """Complete a login with a TOTP code or a backup code.

    Authorised by the challenge token issued after the password step.
    """
    if (body.token is None) == (body.backup_code is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide either a verification code or a backup code",
        )

    user_id = get_subject(decode_token(body.challenge_token, expected_type=CHALLENGE_TOKEN_TYPE))

    is_backup_code = body.backup_code is not None
    code = body.backup_code if is_backup_code else body.token
    if not await service.verify_token(user_id, code, is_backup_code=is_backup_code):
        raise InvalidTokenError()

    user = await service.credentials.find_by_id(user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    settings = get_settings()
    return TwoFactorVerifyResponse(
        access_token=create_access_token(
            user_id=user.id,
            username=user.username,
            role=UserRole.ADMIN if user.is_superadmin else UserRole.USER,
        ),
        expires_in=settings.jwt_expiration_hours * 3600,
    )


@router.post("/reset-request", response_model=TwoFactorResetResponse)
@limiter.limit(TWO_FACTOR_LIMIT)
async def request_reset(
    request: Request,
    body: TwoFactorResetRequest,
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorResetResponse:
    """Request a 2FA reset when the authenticator is lost.

    Authorised by the challenge token issued after the password step.
    """
    user_id = get_subject(decode_token(body.challenge_token, expected_type=CHALLENGE_TOKEN_TYPE))
    return await service.request_reset(user_id)
