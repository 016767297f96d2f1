"""Two-factor authentication service."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from twofactor_api.config import Settings, get_settings
from twofactor_api.exceptions import (
    InvalidPasswordError,
    InvalidTokenError,
    ProvisioningDegradedError,
    TwoFactorAlreadyEnabledError,
    TwoFactorLockedError,
    TwoFactorNotEnabledError,
    TwoFactorNotSetUpError,
    UserNotFoundError,
)
from twofactor_api.models.dto.two_factor import (
    MessageResponse,
    TwoFactorBackupCodesResponse,
    TwoFactorEnableResponse,
    TwoFactorOverviewResponse,
    TwoFactorResetResponse,
    TwoFactorSetupResponse,
    TwoFactorStats,
    TwoFactorStatusResponse,
    TwoFactorTestResponse,
    UserTwoFactorSummary,
)
from twofactor_api.models.orm.two_factor import TwoFactorRecordORM
from twofactor_api.models.orm.user import UserORM
from twofactor_api.repositories.two_factor_repository import TwoFactorRepository
from twofactor_api.repositories.user_repository import UserRepository
from twofactor_api.security.auth import create_reset_token
from twofactor_api.security.encryption import get_encryption_service
from twofactor_api.services.backup_code_manager import BackupCodeManager
from twofactor_api.services.credential_store import CredentialStore
from twofactor_api.services.lockout_policy import LockoutPolicy
from twofactor_api.services.qr_renderer import (
    QrRenderAttempt,
    QrRenderer,
    QrRenderOptions,
    get_qr_renderer,
    render_with_fallback,
)
from twofactor_api.services.totp_engine import TotpEngine
from twofactor_api.utils.secure_logging import log_warning
from twofactor_api.utils.security_events import SecurityEventType, log_security_event

logger = logging.getLogger(__name__)

QR_DARK_COLOR = "#000000"
QR_LIGHT_COLOR = "#FFFFFF"
DEFAULT_ACCOUNT_NAME = "User"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TwoFactorService:
    """Service for TOTP enrollment, verification and backup codes.

    Every state-changing operation commits exactly once on success. Errors
    raised before the commit leave the session to be rolled back by the
    caller (see ``get_db``).
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        credentials: CredentialStore | None = None,
        qr_renderer: QrRenderer | None = None,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service with database session and collaborators.

        Args:
            session: Request-scoped database session
            credentials: User lookup and password check
            qr_renderer: Renderer for provisioning QR codes
            clock: Returns the current time as an aware UTC datetime
            settings: Application settings
        """
        self.session = session
        self.settings = settings or get_settings()
        self.two_factor_repo = TwoFactorRepository(session)
        self.user_repo = UserRepository(session)
        self.credentials = credentials or CredentialStore(session)
        self.qr_renderer = qr_renderer or get_qr_renderer()
        self.encryption = get_encryption_service()
        self.totp = TotpEngine(valid_window=self.settings.totp_valid_window)
        self.backup_codes = BackupCodeManager(
            key=self.settings.jwt_secret,
            count=self.settings.backup_code_count,
            length=self.settings.backup_code_length,
        )
        self.lockout = LockoutPolicy(
            max_attempts=self.settings.max_failed_attempts,
            cooldown=timedelta(minutes=self.settings.lockout_duration_minutes),
        )
        self._clock = clock or _utcnow

    def _now(self) -> datetime:
        return self._clock()

    @staticmethod
    def _account_name(user: UserORM) -> str:
        """Label shown in the authenticator app."""
        if user.email:
            local_part = user.email.split("@")[0]
            if local_part:
                return local_part
        return user.username or DEFAULT_ACCOUNT_NAME

    def _render_attempts(self, account: str, secret: str) -> list[QrRenderAttempt]:
        """Build QR attempts ordered by decreasing fidelity."""
        issuer = self.settings.two_factor_issuer
        return [
            QrRenderAttempt(
                uri=TotpEngine.provisioning_uri(account, secret, issuer),
                options=QrRenderOptions(
                    error_correction="L",
                    width=self.settings.qr_width,
                    margin=self.settings.qr_margin,
                    dark_color=QR_DARK_COLOR,
                    light_color=QR_LIGHT_COLOR,
                ),
            ),
            QrRenderAttempt(
                uri=TotpEngine.provisioning_uri(account, secret, issuer, encode=True),
                options=QrRenderOptions(
                    error_correction="L",
                    width=self.settings.qr_width,
                    margin=self.settings.qr_margin,
                ),
            ),
        ]

    async def _require_user(self, user_id: UUID) -> UserORM:
        user = await self.credentials.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _require_password(self, user_id: UUID, password: str) -> None:
        if not await self.credentials.compare_password(user_id, password):
            log_security_event(
                SecurityEventType.PASSWORD_CHECK_FAILED,
                user_id=user_id,
                success=False,
            )
            raise InvalidPasswordError()

    async def _require_enabled(self, user_id: UUID) -> TwoFactorRecordORM:
        record = await self.two_factor_repo.get_by_user_id(user_id)
        if record is None or not record.is_enabled:
            raise TwoFactorNotEnabledError()
        return record

    async def setup(self, user_id: UUID) -> TwoFactorSetupResponse:
        """Start 2FA setup with a fresh secret.

        Overwrites any previous secret and leaves 2FA disabled until the
        user confirms a code with ``enable``.

        Args:
            user_id: User UUID

        Returns:
            TwoFactorSetupResponse with secret, QR code and provisioning URI

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self._require_user(user_id)
        account = self._account_name(user)

        secret = self.totp.generate_secret()
        await self.two_factor_repo.upsert_setup(
            user_id=user_id,
            secret_encrypted=self.encryption.encrypt_string(secret),
            now=self._now(),
        )

        attempts = self._render_attempts(account, secret)
        qr_code = ""
        degraded = False
        try:
            qr_code = render_with_fallback(self.qr_renderer, attempts)
        except ProvisioningDegradedError as e:
            degraded = True
            log_warning(logger, "QR provisioning degraded, manual entry required", e)
            log_security_event(
                SecurityEventType.PROVISIONING_DEGRADED,
                user_id=user_id,
                details={"attempts": len(attempts)},
                success=False,
            )

        await self.session.commit()

        log_security_event(SecurityEventType.TWO_FACTOR_SETUP_STARTED, user_id=user_id)

        return TwoFactorSetupResponse(
            secret=secret,
            qr_code_data_uri=qr_code,
            provisioning_uri=attempts[0].uri,
            backup_codes=[],
            qr_degraded=degraded,
        )

    async def enable(self, user_id: UUID, token: str) -> TwoFactorEnableResponse:
        """Confirm setup with a TOTP code and turn 2FA on.

        Args:
            user_id: User UUID
            token: 6-digit TOTP code

        Returns:
            TwoFactorEnableResponse with the plaintext backup codes

        Raises:
            TwoFactorNotSetUpError: If setup was never started
            TwoFactorAlreadyEnabledError: If 2FA is already on
            InvalidTokenError: If the code does not verify
        """
        record = await self.two_factor_repo.get_by_user_id(user_id)
        if record is None or record.secret_encrypted is None:
            raise TwoFactorNotSetUpError()
        if record.is_enabled:
            raise TwoFactorAlreadyEnabledError()

        secret = self.encryption.decrypt_string(record.secret_encrypted)
        if not self.totp.verify(secret, token, for_time=self._now()):
            log_security_event(
                SecurityEventType.TWO_FACTOR_ENABLE_FAILED,
                user_id=user_id,
                success=False,
            )
            raise InvalidTokenError()

        batch = self.backup_codes.generate()
        await self.two_factor_repo.enable(record.id, batch.hashes)
        await self.session.commit()

        log_security_event(SecurityEventType.TWO_FACTOR_ENABLED, user_id=user_id)

        return TwoFactorEnableResponse(backup_codes=batch.codes)

    async def disable(
        self,
        user_id: UUID,
        password: str,
        token: str | None = None,
    ) -> MessageResponse:
        """Turn 2FA off after re-checking the account password.

        Args:
            user_id: User UUID
            password: Current account password
            token: Optional TOTP code, verified with lockout applied

        Returns:
            MessageResponse

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidPasswordError: If the password is wrong
            TwoFactorNotEnabledError: If 2FA is off
            InvalidTokenError: If a supplied token does not verify
            TwoFactorLockedError: If a supplied token hits an active lockout
        """
        await self._require_user(user_id)
        await self._require_password(user_id, password)
        record = await self._require_enabled(user_id)
        record_id = record.id

        if token is not None and not await self.verify_token(user_id, token):
            raise InvalidTokenError()

        await self.two_factor_repo.disable(
            record_id,
            now=self._now(),
            purge=self.settings.two_factor_purge_on_disable,
        )
        await self.session.commit()

        log_security_event(
            SecurityEventType.TWO_FACTOR_DISABLED,
            user_id=user_id,
            details={"purged": self.settings.two_factor_purge_on_disable},
        )

        return MessageResponse(message="Two-factor authentication disabled successfully")

    async def verify_token(
        self,
        user_id: UUID,
        token: str,
        is_backup_code: bool = False,
    ) -> bool:
        """Verify a TOTP code or backup code, applying the lockout policy.

        Args:
            user_id: User UUID
            token: TOTP code or backup code
            is_backup_code: Check ``token`` against the backup codes

        Returns:
            True if verified; False on a wrong code or when 2FA is off

        Raises:
            TwoFactorLockedError: If a lock window is active
        """
        record = await self.two_factor_repo.get_by_user_id(user_id)
        if record is None or not record.is_enabled:
            return False

        now = self._now()
        record_id = record.id

        if self.lockout.is_locked(record, now):
            remaining = self.lockout.remaining_seconds(record, now)
            log_security_event(
                SecurityEventType.VERIFICATION_LOCKED,
                user_id=user_id,
                details={"retry_after_seconds": remaining},
                success=False,
            )
            raise TwoFactorLockedError(remaining)

        if self.lockout.has_expired_lock(record, now):
            await self.two_factor_repo.clear_expired_lockout(record_id, now)

        if is_backup_code:
            verified = await self._consume_backup_code(user_id, record_id, token, now)
        else:
            secret_encrypted = record.secret_encrypted
            verified = secret_encrypted is not None and self.totp.verify(
                self.encryption.decrypt_string(secret_encrypted), token, for_time=now
            )

        method = "backup_code" if is_backup_code else "totp"

        if verified:
            if not await self.two_factor_repo.record_successful_attempt(record_id, now):
                # Locked by a concurrent request; keep the backup code unspent
                await self.session.rollback()
                record = await self.two_factor_repo.get_by_user_id(user_id)
                remaining = self.lockout.remaining_seconds(record, now) if record else 0
                raise TwoFactorLockedError(remaining)

            await self.session.commit()
            log_security_event(
                SecurityEventType.VERIFICATION_SUCCESS,
                user_id=user_id,
                details={"method": method},
            )
            return True

        await self.two_factor_repo.record_failed_attempt(
            record_id,
            now=now,
            max_attempts=self.lockout.max_attempts,
            lock_until=self.lockout.lock_until(now),
        )
        await self.session.commit()

        log_security_event(
            SecurityEventType.VERIFICATION_FAILED,
            user_id=user_id,
            details={"method": method},
            success=False,
        )

        record = await self.two_factor_repo.get_by_user_id(user_id)
        if record is not None and self.lockout.is_locked(record, now):
            log_security_event(
                SecurityEventType.LOCKOUT_TRIGGERED,
                user_id=user_id,
                details={
                    "failed_attempts": record.failed_attempts,
                    "locked_until": record.locked_until.isoformat(),
                },
                success=False,
            )

        return False

    async def _consume_backup_code(
        self, user_id: UUID, record_id: UUID, code: str, now: datetime
    ) -> bool:
        """Match a backup code and spend it at most once."""
        entries = await self.two_factor_repo.get_unused_backup_codes(record_id)
        entry = self.backup_codes.match(code, entries)
        if entry is None:
            return False

        # A concurrent request may have spent it since the read
        if not await self.two_factor_repo.consume_backup_code(entry.id, now):
            return False

        log_security_event(
            SecurityEventType.BACKUP_CODE_USED,
            user_id=user_id,
            details={"remaining": len(entries) - 1},
        )
        return True

    async def get_status(self, user_id: UUID) -> TwoFactorStatusResponse:
        """Get 2FA status. Never includes the secret.

        Args:
            user_id: User UUID

        Returns:
            TwoFactorStatusResponse; disabled with zero codes if never set up
        """
        record = await self.two_factor_repo.get_by_user_id(user_id)
        if record is None:
            return TwoFactorStatusResponse()

        return TwoFactorStatusResponse(
            is_enabled=record.is_enabled,
            backup_codes_count=await self.two_factor_repo.count_unused_backup_codes(record.id),
            last_used=record.last_used,
        )

    async def regenerate_backup_codes(
        self,
        user_id: UUID,
        password: str,
    ) -> TwoFactorBackupCodesResponse:
        """Replace all backup codes with a new batch.

        Args:
            user_id: User UUID
            password: Current account password

        Returns:
            TwoFactorBackupCodesResponse with the new plaintext codes

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidPasswordError: If the password is wrong
            TwoFactorNotEnabledError: If 2FA is off
        """
        await self._require_user(user_id)
        await self._require_password(user_id, password)
        record = await self._require_enabled(user_id)

        batch = self.backup_codes.generate()
        await self.two_factor_repo.replace_backup_codes(record.id, batch.hashes)
        await self.session.commit()

        log_security_event(
            SecurityEventType.BACKUP_CODES_REGENERATED,
            user_id=user_id,
            details={"count": len(batch.codes)},
        )

        return TwoFactorBackupCodesResponse(backup_codes=batch.codes)

    def test_token(self, secret: str, token: str) -> TwoFactorTestResponse:
        """Check a code against a secret that is not bound to a user yet.

        No persistence and no lockout.
        """
        verified = self.totp.verify(secret, token, for_time=self._now())
        return TwoFactorTestResponse(
            verified=verified,
            message="Token verified successfully" if verified else "Invalid token",
        )

    async def is_two_factor_enabled(self, user_id: UUID) -> bool:
        """Check whether login for this user requires a second factor."""
        record = await self.two_factor_repo.get_by_user_id(user_id)
        return record is not None and record.is_enabled

    async def get_overview(self) -> TwoFactorOverviewResponse:
        """Get 2FA state of every user with adoption statistics.

        Returns:
            TwoFactorOverviewResponse
        """
        users = await self.user_repo.get_all_ordered()
        records = {record.user_id: record for record in await self.two_factor_repo.get_all()}
        unused_counts = await self.two_factor_repo.count_unused_by_record()

        summaries = []
        for user in users:
            record = records.get(user.id)
            summaries.append(
                UserTwoFactorSummary(
                    user_id=user.id,
                    username=user.username,
                    email=user.email,
                    two_factor_enabled=record is not None and record.is_enabled,
                    setup_at=record.setup_at if record else None,
                    last_used=record.last_used if record else None,
                    backup_codes_count=unused_counts.get(record.id, 0) if record else 0,
                )
            )

        total = len(summaries)
        enabled = sum(1 for summary in summaries if summary.two_factor_enabled)

        return TwoFactorOverviewResponse(
            users=summaries,
            stats=TwoFactorStats(
                total_users=total,
                enabled=enabled,
                disabled=total - enabled,
                adoption_rate=round(enabled / total * 100) if total else 0,
            ),
        )

    async def admin_disable(self, user_id: UUID, admin_id: UUID | None = None) -> MessageResponse:
        """Force 2FA off for a user without password or token.

        Args:
            user_id: Target user UUID
            admin_id: Acting administrator

        Returns:
            MessageResponse

        Raises:
            UserNotFoundError: If the user does not exist
        """
        await self._require_user(user_id)

        record = await self.two_factor_repo.get_by_user_id(user_id)
        if record is not None:
            await self.two_factor_repo.disable(record.id, now=self._now())
        await self.session.commit()

        log_security_event(
            SecurityEventType.TWO_FACTOR_ADMIN_DISABLED,
            user_id=admin_id,
            target_user_id=user_id,
        )

        return MessageResponse(message="Two-factor authentication disabled for user")

    async def request_reset(self, user_id: UUID) -> TwoFactorResetResponse:
        """Start recovery for a user who lost access to their authenticator.

        Issues a short-lived reset token for the account recovery flow. 2FA
        state is left unchanged; the token itself is only echoed back in
        development.

        Args:
            user_id: User UUID from a valid challenge token

        Returns:
            TwoFactorResetResponse

        Raises:
            UserNotFoundError: If the user does not exist
        """
        await self._require_user(user_id)
        reset_token = create_reset_token(user_id)

        log_security_event(
            SecurityEventType.TWO_FACTOR_RESET_REQUESTED,
            user_id=user_id,
            details={"enabled": await self.is_two_factor_enabled(user_id)},
        )

        if self.settings.environment == "development":
            return TwoFactorResetResponse(reset_token=reset_token)
        return TwoFactorResetResponse()
