"""Two-factor authentication DTOs."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


# Requests


class TwoFactorTokenRequest(BaseModel):
    """Request carrying a TOTP code from an authenticator app."""

    token: str = Field(
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="6-digit TOTP code from authenticator app",
    )


class TwoFactorTestRequest(BaseModel):
    """Test a code against a secret that is not bound to an account yet."""

    secret: str = Field(min_length=16, max_length=128, pattern=r"^[A-Za-z2-7=]+$")
    token: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")


class TwoFactorDisableRequest(BaseModel):
    """Request to disable 2FA (requires current password)."""

    password: str = Field(
        min_length=1, max_length=128, description="Current password for verification"
    )
    token: str | None = Field(
        default=None,
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="Optional TOTP code for additional confirmation",
    )


class TwoFactorPasswordRequest(BaseModel):
    """Request requiring password re-verification."""

    password: str = Field(min_length=1, max_length=128)


class TwoFactorVerifyRequest(BaseModel):
    """Login-time verification with a TOTP code or a backup code."""

    challenge_token: str = Field(min_length=1, max_length=2048)
    token: str | None = Field(default=None, min_length=6, max_length=6, pattern=r"^\d{6}$")
    backup_code: str | None = Field(
        default=None,
        min_length=6,
        max_length=20,  # Allow dashes and spaces around the code
        description="Single-use backup code",
    )


class TwoFactorResetRequest(BaseModel):
    """Recovery request from a user stuck at the challenge step."""

    challenge_token: str = Field(min_length=1, max_length=2048)


# Responses


class TwoFactorSetupResponse(BaseModel):
    """Setup response with QR code and secret.

    This is the only response that ever carries the secret.
    """

    secret: str = Field(description="Base32-encoded TOTP secret for manual entry")
    qr_code_data_uri: str = Field(description="QR code as data URI, empty if rendering failed")
    provisioning_uri: str = Field(description="OTPAuth URI for authenticator apps")
    backup_codes: list[str] = Field(
        default_factory=list, description="Always empty; codes are issued when 2FA is enabled"
    )
    qr_degraded: bool = False


class TwoFactorEnableResponse(BaseModel):
    """Response after successfully enabling 2FA."""

    backup_codes: list[str] = Field(description="Single-use backup codes for recovery")
    message: str = "Two-factor authentication enabled successfully"


class TwoFactorBackupCodesResponse(BaseModel):
    """Response with regenerated backup codes."""

    backup_codes: list[str] = Field(description="New single-use backup codes")
    message: str = "New backup codes generated successfully"


class TwoFactorStatusResponse(BaseModel):
    """2FA status for a user. Never includes the secret."""

    is_enabled: bool = False
    backup_codes_count: int = 0
    last_used: datetime | None = None


class TwoFactorTestResponse(BaseModel):
    """Result of testing a token against a setup secret."""

    verified: bool
    message: str


class TwoFactorVerifyResponse(BaseModel):
    """Successful login-time verification."""

    verified: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    message: str = "Two-factor authentication successful"


class TwoFactorResetResponse(BaseModel):
    """Acknowledgement of a recovery request."""

    message: str = "Two-factor reset requested"
    # Only returned in development; delivery is handled by the recovery flow
    reset_token: str | None = None


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


# Admin overview


class UserTwoFactorSummary(BaseModel):
    """Per-user 2FA summary for administrators."""

    user_id: UUID
    username: str
    email: str | None = None
    two_factor_enabled: bool = False
    setup_at: datetime | None = None
    last_used: datetime | None = None
    backup_codes_count: int = 0


class TwoFactorStats(BaseModel):
    """Adoption statistics."""

    total_users: int
    enabled: int
    disabled: int
    adoption_rate: int = Field(description="Percentage of users with 2FA enabled, rounded")


class TwoFactorOverviewResponse(BaseModel):
    """Admin overview of 2FA across all users."""

    users: list[UserTwoFactorSummary]
    stats: TwoFactorStats
