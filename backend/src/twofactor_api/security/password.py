"""Password hashing and verification utilities."""

import bcrypt


class PasswordService:
    """Service for password hashing and verification.

    Passwords belong to the user-management domain; this service only
    re-verifies them before sensitive 2FA changes.
    """

    BCRYPT_ROUNDS = 12

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds or self.BCRYPT_ROUNDS

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify a password against a hash.

        Args:
            password: Plain text password
            hashed: Hashed password

        Returns:
            True if password matches
        """
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, UnicodeDecodeError, UnicodeEncodeError):
            # Invalid hash format or encoding issues
            return False


# Global instance
_password_service: PasswordService | None = None


def get_password_service() -> PasswordService:
    """Get or create the password service singleton."""
    global _password_service
    if _password_service is None:
        _password_service = PasswordService()
    return _password_service
