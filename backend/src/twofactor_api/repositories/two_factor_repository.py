"""Two-factor record repository.

State changes that can race between concurrent requests (lockout counters,
backup code consumption) are issued as single conditional UPDATE statements
instead of read-modify-write on loaded objects.
"""

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, delete, func, insert, literal, null, or_, select, update

from twofactor_api.models.orm.base import UTCDateTime
from twofactor_api.models.orm.two_factor import BackupCodeORM, TwoFactorRecordORM
from twofactor_api.repositories.base import BaseRepository


class TwoFactorRepository(BaseRepository[TwoFactorRecordORM]):
    """Repository for per-user 2FA records and their backup codes."""

    model = TwoFactorRecordORM

    async def get_by_user_id(self, user_id: UUID) -> TwoFactorRecordORM | None:
        """Get the 2FA record of a user, reloaded from the database.

        Args:
            user_id: User UUID

        Returns:
            TwoFactorRecordORM or None if the user never started setup
        """
        result = await self.session.execute(
            select(TwoFactorRecordORM)
            .where(TwoFactorRecordORM.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_setup(
        self,
        user_id: UUID,
        secret_encrypted: bytes,
        now: datetime,
    ) -> TwoFactorRecordORM:
        """Create or overwrite the record with a fresh, not yet enabled secret.

        Args:
            user_id: User UUID
            secret_encrypted: Encrypted TOTP secret
            now: Setup timestamp

        Returns:
            The created or updated record
        """
        record = await self.get_by_user_id(user_id)
        if record is None:
            return await self.create(
                user_id=user_id,
                secret_encrypted=secret_encrypted,
                is_enabled=False,
                setup_at=now,
                failed_attempts=0,
            )

        record.secret_encrypted = secret_encrypted
        # Don't enable yet - requires verification
        record.is_enabled = False
        record.setup_at = now
        await self.session.flush()
        return record

    async def enable(self, record_id: UUID, code_hashes: Sequence[str]) -> None:
        """Enable 2FA with a fresh backup code batch.

        Args:
            record_id: Record UUID
            code_hashes: Hashes of the new backup codes, in display order
        """
        await self.replace_backup_codes(record_id, code_hashes)
        await self.session.execute(
            update(TwoFactorRecordORM)
            .where(TwoFactorRecordORM.id == record_id)
            .values(
                is_enabled=True,
                failed_attempts=0,
                locked_until=None,
                disabled_at=None,
            )
            .execution_options(synchronize_session=False)
        )

    async def disable(self, record_id: UUID, now: datetime, purge: bool = False) -> None:
        """Turn 2FA off for a record.

        Args:
            record_id: Record UUID
            now: Disable timestamp
            purge: Also drop the secret and all backup codes
        """
        values: dict = {"is_enabled": False, "disabled_at": now}
        if purge:
            values["secret_encrypted"] = None
            await self.session.execute(
                delete(BackupCodeORM).where(BackupCodeORM.record_id == record_id)
            )

        await self.session.execute(
            update(TwoFactorRecordORM)
            .where(TwoFactorRecordORM.id == record_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def replace_backup_codes(self, record_id: UUID, code_hashes: Sequence[str]) -> None:
        """Discard the current backup code batch and store a new one.

        Args:
            record_id: Record UUID
            code_hashes: Hashes of the new backup codes, in display order
        """
        await self.session.execute(
            delete(BackupCodeORM).where(BackupCodeORM.record_id == record_id)
        )
        if code_hashes:
            await self.session.execute(
                insert(BackupCodeORM),
                [
                    {
                        "record_id": record_id,
                        "position": position,
                        "code_hash": code_hash,
                        "used": False,
                    }
                    for position, code_hash in enumerate(code_hashes)
                ],
            )

    async def get_unused_backup_codes(self, record_id: UUID) -> list[BackupCodeORM]:
        """Get unused backup codes of a record.

        Args:
            record_id: Record UUID

        Returns:
            List of BackupCodeORM ordered by position
        """
        result = await self.session.execute(
            select(BackupCodeORM)
            .where(BackupCodeORM.record_id == record_id)
            .where(BackupCodeORM.used.is_(False))
            .order_by(BackupCodeORM.position)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_unused_backup_codes(self, record_id: UUID) -> int:
        """Count unused backup codes of a record.

        Args:
            record_id: Record UUID

        Returns:
            Number of codes still available
        """
        result = await self.session.execute(
            select(func.count())
            .select_from(BackupCodeORM)
            .where(BackupCodeORM.record_id == record_id)
            .where(BackupCodeORM.used.is_(False))
        )
        return result.scalar_one()

    async def count_unused_by_record(self) -> dict[UUID, int]:
        """Count unused backup codes for every record.

        Returns:
            Dict mapping record ID to its unused code count
        """
        result = await self.session.execute(
            select(BackupCodeORM.record_id, func.count())
            .where(BackupCodeORM.used.is_(False))
            .group_by(BackupCodeORM.record_id)
        )
        return {row[0]: row[1] for row in result.all()}

    async def get_all(self) -> list[TwoFactorRecordORM]:
        """Get all 2FA records.

        Returns:
            List of TwoFactorRecordORM
        """
        result = await self.session.execute(
            select(TwoFactorRecordORM).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def consume_backup_code(self, code_id: UUID, now: datetime) -> bool:
        """Mark a backup code used, only if it is still unused.

        Args:
            code_id: Backup code UUID
            now: Usage timestamp

        Returns:
            True if this call consumed the code, False if it was already used
        """
        result = await self.session.execute(
            update(BackupCodeORM)
            .where(BackupCodeORM.id == code_id)
            .where(BackupCodeORM.used.is_(False))
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def record_failed_attempt(
        self,
        record_id: UUID,
        now: datetime,
        max_attempts: int,
        lock_until: datetime,
    ) -> None:
        """Increment the failure counter, locking once it reaches the threshold.

        Only applies while the record is not locked, so concurrent failures
        never extend an active lock.

        Args:
            record_id: Record UUID
            now: Current time
            max_attempts: Failure threshold
            lock_until: Lock expiry to set when the threshold is reached
        """
        attempts = TwoFactorRecordORM.failed_attempts + 1
        await self.session.execute(
            update(TwoFactorRecordORM)
            .where(TwoFactorRecordORM.id == record_id)
            .where(
                or_(
                    TwoFactorRecordORM.locked_until.is_(None),
                    TwoFactorRecordORM.locked_until <= now,
                )
            )
            .values(
                failed_attempts=attempts,
                locked_until=case(
                    (attempts >= max_attempts, literal(lock_until, UTCDateTime())),
                    else_=null(),
                ),
            )
            .execution_options(synchronize_session=False)
        )

    async def record_successful_attempt(self, record_id: UUID, now: datetime) -> bool:
        """Reset the failure counter and stamp last use.

        Args:
            record_id: Record UUID
            now: Current time

        Returns:
            False if a concurrent request locked the record in the meantime
        """
        result = await self.session.execute(
            update(TwoFactorRecordORM)
            .where(TwoFactorRecordORM.id == record_id)
            .where(
                or_(
                    TwoFactorRecordORM.locked_until.is_(None),
                    TwoFactorRecordORM.locked_until <= now,
                )
            )
            .values(failed_attempts=0, locked_until=None, last_used=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def clear_expired_lockout(self, record_id: UUID, now: datetime) -> bool:
        """Unlock a record whose lock window has elapsed.

        Args:
            record_id: Record UUID
            now: Current time

        Returns:
            True if an expired lock was cleared
        """
        result = await self.session.execute(
            update(TwoFactorRecordORM)
            .where(TwoFactorRecordORM.id == record_id)
            .where(TwoFactorRecordORM.locked_until.is_not(None))
            .where(TwoFactorRecordORM.locked_until <= now)
            .values(failed_attempts=0, locked_until=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
