"""Read-only access to user accounts and their passwords."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from twofactor_api.models.orm.user import UserORM
from twofactor_api.repositories.user_repository import UserRepository
from twofactor_api.security.password import PasswordService, get_password_service


class CredentialStore:
    """User lookup and password comparison backed by the users table."""

    def __init__(
        self,
        session: AsyncSession,
        password_service: PasswordService | None = None,
    ) -> None:
        self.user_repo = UserRepository(session)
        self.password_service = password_service or get_password_service()

    async def find_by_id(self, user_id: UUID) -> UserORM | None:
        """Get a user by ID."""
        return await self.user_repo.get_by_id(user_id)

    async def compare_password(self, user_id: UUID, plaintext: str) -> bool:
        """Check a plaintext password against the stored hash.

        Args:
            user_id: User UUID
            plaintext: Password entered by the user

        Returns:
            False for unknown users and accounts without a local password
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None or not user.password_hash:
            return False
        return self.password_service.verify_password(plaintext, user.password_hash)
