"""Security package."""

from twofactor_api.security.auth import (
    create_access_token,
    create_challenge_token,
    create_reset_token,
    get_current_user,
    require_admin,
)
from twofactor_api.security.encryption import EncryptionService
from twofactor_api.security.password import PasswordService

__all__ = [
    "EncryptionService",
    "PasswordService",
    "create_access_token",
    "create_challenge_token",
    "create_reset_token",
    "get_current_user",
    "require_admin",
]
