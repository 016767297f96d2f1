"""Data Transfer Objects package."""

from twofactor_api.models.dto.two_factor import (
    MessageResponse,
    TwoFactorBackupCodesResponse,
    TwoFactorEnableResponse,
    TwoFactorOverviewResponse,
    TwoFactorResetResponse,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
    TwoFactorTestResponse,
    TwoFactorVerifyResponse,
)

__all__ = [
    "MessageResponse",
    "TwoFactorBackupCodesResponse",
    "TwoFactorEnableResponse",
    "TwoFactorOverviewResponse",
    "TwoFactorResetResponse",
    "TwoFactorSetupResponse",
    "TwoFactorStatusResponse",
    "TwoFactorTestResponse",
    "TwoFactorVerifyResponse",
]
