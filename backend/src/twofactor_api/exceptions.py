"""Domain-specific exceptions for the two-factor API.

These exceptions provide a clean separation between service-layer errors
and HTTP responses, avoiding string matching in routers.
"""

from typing import Any


class TwoFactorAPIError(Exception):
    """Base exception for all two-factor API errors."""

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(TwoFactorAPIError):
    """Base class for resource not found errors."""

    pass


class UserNotFoundError(NotFoundError):
    """Raised when a user cannot be found."""

    def __init__(self, user_id: Any = None) -> None:
        message = "User not found"
        details = {"user_id": str(user_id)} if user_id else {}
        super().__init__(message, details)


# =============================================================================
# State Errors (400 / 409)
# =============================================================================


class TwoFactorStateError(TwoFactorAPIError):
    """Base class for operations invalid in the current 2FA state."""

    pass


class TwoFactorNotSetUpError(TwoFactorStateError):
    """Raised when enabling 2FA before a secret was provisioned."""

    def __init__(self) -> None:
        super().__init__("Two-factor authentication is not set up. Please start setup first.")


class TwoFactorAlreadyEnabledError(TwoFactorStateError):
    """Raised when enabling 2FA a second time."""

    def __init__(self) -> None:
        super().__init__("Two-factor authentication is already enabled")


class TwoFactorNotEnabledError(TwoFactorStateError):
    """Raised when disabling or regenerating codes while 2FA is off."""

    def __init__(self) -> None:
        super().__init__("Two-factor authentication is not enabled")


# =============================================================================
# Authentication Errors (401 / 423)
# =============================================================================


class AuthenticationError(TwoFactorAPIError):
    """Base class for credential check failures."""

    pass


class InvalidPasswordError(AuthenticationError):
    """Raised when the account password check fails."""

    def __init__(self) -> None:
        super().__init__("Invalid password")


class InvalidTokenError(AuthenticationError):
    """Raised when a TOTP token or backup code does not verify."""

    def __init__(self, message: str = "Invalid verification code") -> None:
        super().__init__(message)


class TwoFactorLockedError(TwoFactorAPIError):
    """Raised when verification is blocked by an active lockout window."""

    def __init__(self, retry_after_seconds: int) -> None:
        self.retry_after_seconds = max(retry_after_seconds, 0)
        minutes = max(1, -(-self.retry_after_seconds // 60))
        super().__init__(
            f"Account temporarily locked due to too many failed attempts. "
            f"Try again in {minutes} minute{'s' if minutes != 1 else ''}.",
            {"retry_after_seconds": self.retry_after_seconds},
        )


# =============================================================================
# Provisioning Errors (absorbed by the service)
# =============================================================================


class ProvisioningDegradedError(TwoFactorAPIError):
    """Raised when no QR code could be rendered for a provisioning URI.

    Setup still succeeds; the user falls back to manual secret entry.
    """

    def __init__(self, attempts: int) -> None:
        super().__init__(
            "QR code could not be generated; use manual entry",
            {"attempts": attempts},
        )
