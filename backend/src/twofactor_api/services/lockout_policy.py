"""Lockout policy for repeated verification failures."""

import math
from datetime import datetime, timedelta

from twofactor_api.config import get_settings
from twofactor_api.models.orm.two_factor import TwoFactorRecordORM


class LockoutPolicy:
    """Open/Locked state machine evaluated lazily against a record.

    The counter itself is moved by atomic repository updates; this class
    only answers questions about a loaded record.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        cooldown: timedelta | None = None,
    ) -> None:
        settings = get_settings()
        self.max_attempts = max_attempts or settings.max_failed_attempts
        self.cooldown = cooldown or timedelta(minutes=settings.lockout_duration_minutes)

    def is_locked(self, record: TwoFactorRecordORM, now: datetime) -> bool:
        """Check whether a lock window is active."""
        return record.locked_until is not None and record.locked_until > now

    def has_expired_lock(self, record: TwoFactorRecordORM, now: datetime) -> bool:
        """Check whether a lock was set but its window has passed."""
        return record.locked_until is not None and record.locked_until <= now

    def remaining_seconds(self, record: TwoFactorRecordORM, now: datetime) -> int:
        """Seconds left until the lock expires, rounded up."""
        if record.locked_until is None:
            return 0
        return max(0, math.ceil((record.locked_until - now).total_seconds()))

    def lock_until(self, now: datetime) -> datetime:
        """Lock expiry for a lock tripped at ``now``."""
        return now + self.cooldown
