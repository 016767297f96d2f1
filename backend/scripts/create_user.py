#!/usr/bin/env python
"""Create a user account for local development and testing."""

import asyncio
import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from twofactor_api.database import async_session_maker
from twofactor_api.repositories.user_repository import UserRepository
from twofactor_api.security.password import get_password_service

MIN_PASSWORD_LENGTH = 12


async def create_user(
    username: str,
    password: str,
    email: str | None = None,
    superadmin: bool = False,
) -> bool:
    """Create a user with a local password."""
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return False

    password_hash = get_password_service().hash_password(password)

    async with async_session_maker() as session:
        repo = UserRepository(session)

        if await repo.get_by_username(username) is not None:
            print(f"User {username} already exists")
            return False

        user = await repo.create(
            username=username,
            email=email.lower() if email else None,
            password_hash=password_hash,
            is_active=True,
            is_superadmin=superadmin,
        )
        await session.commit()
        print(f"User created: {username} ({user.id})")
        return True


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Create a user account")
    parser.add_argument("--username", required=True, help="Unique username")
    parser.add_argument("--password", required=True, help=f"Password (min {MIN_PASSWORD_LENGTH} chars)")
    parser.add_argument("--email", help="Email address")
    parser.add_argument("--superadmin", action="store_true", help="Grant admin access")
    args = parser.parse_args()

    ok = asyncio.run(create_user(args.username, args.password, args.email, args.superadmin))
    sys.exit(0 if ok else 1)
