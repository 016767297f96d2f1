"""Domain models package."""

from twofactor_api.models.domain.user import AuthenticatedUser, UserRole

__all__ = ["AuthenticatedUser", "UserRole"]
