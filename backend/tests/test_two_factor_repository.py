"""Tests for the atomic state changes of the two-factor repository."""

from datetime import datetime, timedelta, timezone

import pytest

from twofactor_api.repositories.two_factor_repository import TwoFactorRepository

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)
LOCK = NOW + timedelta(minutes=15)


@pytest.fixture
async def record(session, user):
    repo = TwoFactorRepository(session)
    record = await repo.upsert_setup(user.id, b"encrypted", NOW)
    await repo.enable(record.id, ["a" * 64, "b" * 64, "c" * 64])
    await session.commit()
    return await repo.get_by_user_id(user.id)


class TestBackupCodeConsumption:
    """Tests for at-most-once backup code consumption."""

    async def test_second_consume_loses(self, session, record) -> None:
        repo = TwoFactorRepository(session)
        entry = (await repo.get_unused_backup_codes(record.id))[0]

        assert await repo.consume_backup_code(entry.id, NOW) is True
        assert await repo.consume_backup_code(entry.id, NOW) is False
        assert await repo.count_unused_backup_codes(record.id) == 2

    async def test_stale_read_cannot_double_spend(self, session, record) -> None:
        """Two readers holding the same unused entry: only one spends it."""
        repo = TwoFactorRepository(session)
        first_read = await repo.get_unused_backup_codes(record.id)
        second_read = await repo.get_unused_backup_codes(record.id)

        assert await repo.consume_backup_code(first_read[0].id, NOW) is True
        await session.commit()
        assert await repo.consume_backup_code(second_read[0].id, NOW) is False

    async def test_replace_discards_old_batch(self, session, record) -> None:
        repo = TwoFactorRepository(session)

        await repo.replace_backup_codes(record.id, ["d" * 64, "e" * 64])

        entries = await repo.get_unused_backup_codes(record.id)
        assert [entry.code_hash for entry in entries] == ["d" * 64, "e" * 64]
        assert [entry.position for entry in entries] == [0, 1]


class TestLockoutCounters:
    """Tests for atomic failure and success updates."""

    async def test_failures_trip_lock_at_threshold(self, session, record) -> None:
        repo = TwoFactorRepository(session)
        for _ in range(4):
            await repo.record_failed_attempt(record.id, NOW, max_attempts=5, lock_until=LOCK)

        record = await repo.get_by_user_id(record.user_id)
        assert record.failed_attempts == 4
        assert record.locked_until is None

        await repo.record_failed_attempt(record.id, NOW, max_attempts=5, lock_until=LOCK)

        record = await repo.get_by_user_id(record.user_id)
        assert record.failed_attempts == 5
        assert record.locked_until == LOCK

    async def test_failure_while_locked_is_ignored(self, session, record) -> None:
        """Concurrent failures cannot push the counter or extend the lock."""
        repo = TwoFactorRepository(session)
        for _ in range(5):
            await repo.record_failed_attempt(record.id, NOW, max_attempts=5, lock_until=LOCK)

        later = NOW + timedelta(minutes=1)
        await repo.record_failed_attempt(
            record.id, later, max_attempts=5, lock_until=later + timedelta(minutes=15)
        )

        record = await repo.get_by_user_id(record.user_id)
        assert record.failed_attempts == 5
        assert record.locked_until == LOCK

    async def test_success_while_locked_is_rejected(self, session, record) -> None:
        repo = TwoFactorRepository(session)
        for _ in range(5):
            await repo.record_failed_attempt(record.id, NOW, max_attempts=5, lock_until=LOCK)

        assert await repo.record_successful_attempt(record.id, NOW) is False

        record = await repo.get_by_user_id(record.user_id)
        assert record.failed_attempts == 5
        assert record.last_used is None

    async def test_success_resets_counter(self, session, record) -> None:
        repo = TwoFactorRepository(session)
        await repo.record_failed_attempt(record.id, NOW, max_attempts=5, lock_until=LOCK)

        assert await repo.record_successful_attempt(record.id, NOW) is True

        record = await repo.get_by_user_id(record.user_id)
        assert record.failed_attempts == 0
        assert record.last_used == NOW

    async def test_clear_expired_lockout(self, session, record) -> None:
        repo = TwoFactorRepository(session)
        for _ in range(5):
            await repo.record_failed_attempt(record.id, NOW, max_attempts=5, lock_until=LOCK)

        assert await repo.clear_expired_lockout(record.id, NOW) is False
        assert await repo.clear_expired_lockout(record.id, LOCK) is True

        record = await repo.get_by_user_id(record.user_id)
        assert record.failed_attempts == 0
        assert record.locked_until is None
