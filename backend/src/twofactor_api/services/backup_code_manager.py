"""Backup code generation and matching.

Codes are shown to the user exactly once. Only a keyed HMAC-SHA256 of the
normalized code is persisted, so a database dump alone cannot be used to
brute-force the short codes offline.
"""

import hashlib
import hmac
import secrets
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from twofactor_api.config import get_settings

# No 0/O, 1/I/L
BACKUP_CODE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
BACKUP_CODE_GROUP = 4


class HashedEntry(Protocol):
    """Anything carrying a stored backup code hash."""

    code_hash: str


E = TypeVar("E", bound=HashedEntry)


@dataclass(frozen=True)
class BackupCodeBatch:
    """A freshly generated batch: plaintext for display, hashes for storage."""

    codes: list[str]
    hashes: list[str]


class BackupCodeManager:
    """Generate, hash and match single-use recovery codes."""

    def __init__(
        self,
        key: str | bytes | None = None,
        count: int | None = None,
        length: int | None = None,
    ) -> None:
        settings = get_settings()
        if key is None:
            key = settings.jwt_secret
        self._key = key.encode("utf-8") if isinstance(key, str) else key
        self.count = count or settings.backup_code_count
        self.length = length or settings.backup_code_length

    def generate(self) -> BackupCodeBatch:
        """Generate a batch of unique backup codes.

        Returns:
            BackupCodeBatch with formatted codes (XXXX-XXXX) and their hashes
        """
        seen: set[str] = set()
        codes: list[str] = []
        while len(codes) < self.count:
            raw = "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(self.length))
            if raw in seen:
                continue
            seen.add(raw)
            codes.append(self.format(raw))

        return BackupCodeBatch(codes=codes, hashes=[self.hash_code(code) for code in codes])

    @staticmethod
    def normalize(code: str) -> str:
        """Strip dashes and whitespace and uppercase a code."""
        return "".join(c for c in code if c != "-" and not c.isspace()).upper()

    @staticmethod
    def format(raw: str) -> str:
        """Group a raw code for display, e.g. ``ABCD-EFGH``."""
        return "-".join(
            raw[i : i + BACKUP_CODE_GROUP] for i in range(0, len(raw), BACKUP_CODE_GROUP)
        )

    def hash_code(self, code: str) -> str:
        """Hash a backup code for secure storage.

        Args:
            code: Plain text backup code, with or without dashes

        Returns:
            Hex HMAC-SHA256 of the normalized code
        """
        normalized = self.normalize(code)
        return hmac.new(self._key, normalized.encode("utf-8"), hashlib.sha256).hexdigest()

    def match(self, candidate: str, entries: Sequence[E]) -> E | None:
        """Find the entry matching a candidate code.

        Compares against every entry so the time taken does not reveal
        which position matched.

        Args:
            candidate: Code entered by the user
            entries: Unused stored entries

        Returns:
            The matching entry or None
        """
        candidate_hash = self.hash_code(candidate)
        found: E | None = None
        for entry in entries:
            if hmac.compare_digest(candidate_hash, entry.code_hash) and found is None:
                found = entry
        return found
