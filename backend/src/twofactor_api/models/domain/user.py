"""Authenticated user domain model."""

from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel


class UserRole(StrEnum):
    """Caller role carried in access tokens."""

    USER = "user"
    ADMIN = "admin"


class AuthenticatedUser(BaseModel):
    """Caller identity resolved from a bearer access token."""

    id: UUID
    username: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        """Check if the caller has administrator rights."""
        return self.role == UserRole.ADMIN
