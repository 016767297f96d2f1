"""Tests for the lockout policy."""

from datetime import datetime, timedelta, timezone

from twofactor_api.models.orm.two_factor import TwoFactorRecordORM
from twofactor_api.services.lockout_policy import LockoutPolicy

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


def _record(locked_until: datetime | None = None, failed_attempts: int = 0) -> TwoFactorRecordORM:
    return TwoFactorRecordORM(locked_until=locked_until, failed_attempts=failed_attempts)


class TestLockoutPolicy:
    """Tests for Open/Locked evaluation."""

    def test_defaults_from_settings(self) -> None:
        policy = LockoutPolicy()

        assert policy.max_attempts == 5
        assert policy.cooldown == timedelta(minutes=15)

    def test_open_without_lock(self) -> None:
        policy = LockoutPolicy()
        record = _record()

        assert not policy.is_locked(record, NOW)
        assert not policy.has_expired_lock(record, NOW)
        assert policy.remaining_seconds(record, NOW) == 0

    def test_locked_inside_window(self) -> None:
        policy = LockoutPolicy()
        record = _record(locked_until=NOW + timedelta(minutes=10))

        assert policy.is_locked(record, NOW)
        assert policy.remaining_seconds(record, NOW) == 600

    def test_remaining_seconds_rounds_up(self) -> None:
        policy = LockoutPolicy()
        record = _record(locked_until=NOW + timedelta(seconds=59, milliseconds=1))

        assert policy.remaining_seconds(record, NOW) == 60

    def test_open_again_at_expiry(self) -> None:
        """The lock ends exactly at locked_until."""
        policy = LockoutPolicy()
        record = _record(locked_until=NOW)

        assert not policy.is_locked(record, NOW)
        assert policy.has_expired_lock(record, NOW)

    def test_lock_until_uses_cooldown(self) -> None:
        policy = LockoutPolicy(max_attempts=3, cooldown=timedelta(minutes=2))

        assert policy.lock_until(NOW) == NOW + timedelta(minutes=2)
        assert policy.max_attempts == 3
