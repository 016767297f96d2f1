"""Services package."""

from twofactor_api.services.backup_code_manager import BackupCodeManager
from twofactor_api.services.credential_store import CredentialStore
from twofactor_api.services.lockout_policy import LockoutPolicy
from twofactor_api.services.qr_renderer import QrCodeRenderer
from twofactor_api.services.totp_engine import TotpEngine
from twofactor_api.services.two_factor_service import TwoFactorService

__all__ = [
    "BackupCodeManager",
    "CredentialStore",
    "LockoutPolicy",
    "QrCodeRenderer",
    "TotpEngine",
    "TwoFactorService",
]
