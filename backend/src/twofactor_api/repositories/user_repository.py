"""User repository."""

from sqlalchemy import select

from twofactor_api.models.orm.user import UserORM
from twofactor_api.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserORM]):
    """Read access to user accounts."""

    model = UserORM

    async def get_by_username(self, username: str) -> UserORM | None:
        """Get a user by username.

        Args:
            username: Unique username

        Returns:
            UserORM or None if not found
        """
        result = await self.session.execute(
            select(UserORM).where(UserORM.username == username)
        )
        return result.scalar_one_or_none()

    async def get_all_ordered(self) -> list[UserORM]:
        """Get all users ordered by username.

        Returns:
            List of UserORM
        """
        result = await self.session.execute(select(UserORM).order_by(UserORM.username))
        return list(result.scalars().all())
