"""TOTP (Time-based One-Time Password) engine for two-factor authentication."""

import binascii
from datetime import datetime
from urllib.parse import quote

import pyotp

from twofactor_api.config import get_settings

# TOTP Constants (RFC 6238)
TOTP_DIGITS = 6
TOTP_PERIOD = 30  # seconds
TOTP_SECRET_LENGTH = 32  # base32 characters, 160 bits


class TotpEngine:
    """Stateless TOTP generation and verification.

    Uses the standard 30-second step, 6-digit, HMAC-SHA1 parameters that
    authenticator apps expect. Malformed input never raises; it simply fails
    verification.
    """

    def __init__(self, valid_window: int | None = None) -> None:
        """Initialize engine.

        Args:
            valid_window: Steps accepted before/after the current one
                (default from settings, 2 = +/-60s)
        """
        if valid_window is None:
            valid_window = get_settings().totp_valid_window
        self.valid_window = valid_window

    def generate_secret(self) -> str:
        """Generate a new TOTP secret key.

        Returns:
            Base32-encoded secret key (RFC 4648)
        """
        return pyotp.random_base32(length=TOTP_SECRET_LENGTH)

    def verify(self, secret: str, token: str, for_time: datetime | None = None) -> bool:
        """Verify a TOTP code with time window tolerance.

        Args:
            secret: Base32-encoded TOTP secret
            token: 6-digit TOTP code to verify
            for_time: Time to verify against (default: now)

        Returns:
            True if code is valid within the time window
        """
        if not secret or not token:
            return False

        token = token.strip()
        if len(token) != TOTP_DIGITS or not (token.isascii() and token.isdigit()):
            return False

        try:
            totp = pyotp.TOTP(secret.upper(), digits=TOTP_DIGITS, interval=TOTP_PERIOD)
            return totp.verify(token, for_time=for_time, valid_window=self.valid_window)
        except (binascii.Error, ValueError, TypeError):
            # Malformed secret
            return False

    def at(self, secret: str, for_time: datetime) -> str:
        """Generate the code valid at a given time."""
        return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD).at(for_time)

    @staticmethod
    def provisioning_uri(
        account: str,
        secret: str,
        issuer: str,
        encode: bool = False,
    ) -> str:
        """Build a minimal otpauth URI for authenticator apps.

        Format: otpauth://totp/{account}?secret={secret}&issuer={issuer}

        Args:
            account: Account label shown in the app
            secret: Base32-encoded TOTP secret
            issuer: Issuer name
            encode: Percent-encode the account label and issuer; some QR
                encoders reject characters the raw form may contain

        Returns:
            OTPAuth URI string
        """
        if encode:
            account = quote(account, safe="")
            issuer = quote(issuer, safe="")
        return f"otpauth://totp/{account}?secret={secret.rstrip('=')}&issuer={issuer}"
