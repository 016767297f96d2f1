"""Dependency injection factories for FastAPI."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from twofactor_api.database import get_db
from twofactor_api.services.two_factor_service import TwoFactorService


def get_two_factor_service(db: AsyncSession = Depends(get_db)) -> TwoFactorService:
    """Get TwoFactorService instance."""
    return TwoFactorService(db)
