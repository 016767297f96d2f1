"""Admin router for 2FA oversight."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request

from twofactor_api.dependencies import get_two_factor_service
from twofactor_api.models.domain.user import AuthenticatedUser
from twofactor_api.models.dto.two_factor import MessageResponse, TwoFactorOverviewResponse
from twofactor_api.security.auth import require_admin
from twofactor_api.security.rate_limit import API_DEFAULT_LIMIT, limiter
from twofactor_api.services.two_factor_service import TwoFactorService

router = APIRouter()


@router.get("/status", response_model=TwoFactorOverviewResponse)
@limiter.limit(API_DEFAULT_LIMIT)
async def get_overview(
    request: Request,
    current_user: Annotated[AuthenticatedUser, Depends(require_admin)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TwoFactorOverviewResponse:
    """List 2FA state for all users with adoption statistics."""
    return await service.get_overview()


@router.post("/{user_id}/disable", response_model=MessageResponse)
@limiter.limit(API_DEFAULT_LIMIT)
async def force_disable(
    request: Request,
    user_id: Annotated[UUID, Path()],
    current_user: Annotated[AuthenticatedUser, Depends(require_admin)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> MessageResponse:
    """Force-disable 2FA for a user who lost their authenticator."""
    return await service.admin_disable(user_id, admin_id=current_user.id)
