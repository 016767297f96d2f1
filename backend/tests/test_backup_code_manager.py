"""Tests for backup code generation and matching."""

import re
from dataclasses import dataclass

import pytest

from twofactor_api.services.backup_code_manager import BACKUP_CODE_ALPHABET, BackupCodeManager


@dataclass
class Entry:
    code_hash: str


@pytest.fixture
def manager() -> BackupCodeManager:
    return BackupCodeManager(key="unit-test-key", count=10, length=8)


class TestGenerate:
    """Tests for batch generation."""

    def test_batch_size_and_format(self, manager: BackupCodeManager) -> None:
        batch = manager.generate()

        assert len(batch.codes) == 10
        assert len(batch.hashes) == 10
        for code in batch.codes:
            assert re.fullmatch(r"[A-Z0-9]{4}-[A-Z0-9]{4}", code)

    def test_codes_use_unambiguous_alphabet(self, manager: BackupCodeManager) -> None:
        for code in manager.generate().codes:
            assert set(code.replace("-", "")) <= set(BACKUP_CODE_ALPHABET)

    def test_no_duplicates_within_batch(self) -> None:
        """Uniqueness holds even when the code space is tiny."""
        manager = BackupCodeManager(key="k", count=20, length=2)
        batch = manager.generate()

        assert len(set(batch.codes)) == 20

    def test_hashes_do_not_contain_plaintext(self, manager: BackupCodeManager) -> None:
        batch = manager.generate()
        for code, code_hash in zip(batch.codes, batch.hashes):
            assert code_hash == manager.hash_code(code)
            assert code.replace("-", "") not in code_hash
            assert len(code_hash) == 64

    def test_custom_length(self) -> None:
        manager = BackupCodeManager(key="k", count=3, length=10)
        for code in manager.generate().codes:
            assert len(code.replace("-", "")) == 10


class TestHashing:
    """Tests for code normalization and hashing."""

    @pytest.mark.parametrize("variant", ["ABCD-EFGH", "abcd-efgh", "ABCDEFGH", " abcd efgh ", "AB-CD-EF-GH"])
    def test_normalized_variants_hash_equal(self, manager: BackupCodeManager, variant: str) -> None:
        assert manager.hash_code(variant) == manager.hash_code("ABCD-EFGH")

    def test_hash_is_keyed(self) -> None:
        """A different application key yields a different hash."""
        a = BackupCodeManager(key="key-a", count=1, length=8)
        b = BackupCodeManager(key="key-b", count=1, length=8)

        assert a.hash_code("ABCD-EFGH") != b.hash_code("ABCD-EFGH")


class TestMatch:
    """Tests for matching a candidate against stored entries."""

    def test_match_returns_entry(self, manager: BackupCodeManager) -> None:
        batch = manager.generate()
        entries = [Entry(code_hash) for code_hash in batch.hashes]

        assert manager.match(batch.codes[3], entries) is entries[3]

    def test_match_accepts_unformatted_input(self, manager: BackupCodeManager) -> None:
        batch = manager.generate()
        entries = [Entry(code_hash) for code_hash in batch.hashes]

        assert manager.match(batch.codes[0].replace("-", "").lower(), entries) is entries[0]

    def test_no_match(self, manager: BackupCodeManager) -> None:
        batch = manager.generate()
        entries = [Entry(code_hash) for code_hash in batch.hashes]
        unused = next(c for c in ("2222-2222", "3333-3333") if c not in batch.codes)

        assert manager.match(unused, entries) is None

    def test_empty_entries(self, manager: BackupCodeManager) -> None:
        assert manager.match("ABCD-EFGH", []) is None
