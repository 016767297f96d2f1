"""AES-256-GCM encryption service with key versioning for secure key rotation."""

import base64
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from twofactor_api.config import get_settings


class EncryptionService:
    """Service for encrypting TOTP secrets at rest using AES-256-GCM.

    Supports key versioning for seamless key rotation:
    - New data is always encrypted with the current (latest) key
    - Old data can be decrypted with any known key version

    Data format: magic (2 bytes) + version (1 byte) + nonce (12 bytes) + ciphertext
    """

    # Magic bytes to identify versioned encryption format (0xEC = "Encrypted")
    MAGIC_BYTES = b"\xEC\x01"
    MAGIC_SIZE = 2
    NONCE_SIZE = 12  # 96 bits for GCM
    VERSION_SIZE = 1  # 1 byte for version (0-255)

    def __init__(
        self,
        current_key: str | None = None,
        legacy_keys: list[str] | None = None,
    ) -> None:
        """Initialize encryption service with current key and optional legacy keys.

        Args:
            current_key: Current encryption key (base64-encoded, 32 bytes decoded)
            legacy_keys: List of legacy keys for decryption (oldest to newest)
        """
        settings = get_settings()

        if current_key is None:
            current_key = settings.encryption_key

        self._current_key = self._decode_key(current_key)
        self._current_aesgcm = AESGCM(self._current_key)

        # Load legacy keys for decryption
        self._key_chain: list[bytes] = []

        if legacy_keys is not None:
            for key in legacy_keys:
                self._key_chain.append(self._decode_key(key))
        elif settings.encryption_key_legacy:
            for key in settings.encryption_key_legacy.split(","):
                key = key.strip()
                if key:
                    self._key_chain.append(self._decode_key(key))

        # Add current key as the latest in the chain
        self._key_chain.append(self._current_key)

    def _decode_key(self, key: str) -> bytes:
        """Decode and validate a base64-encoded encryption key.

        Args:
            key: Base64 URL-safe encoded encryption key

        Returns:
            Decoded 32-byte key

        Raises:
            ValueError: If key is not valid base64 or not 32 bytes
        """
        try:
            # Add padding if missing (base64 requires multiple of 4)
            padded_key = key + "=" * (4 - len(key) % 4) if len(key) % 4 else key
            decoded = base64.urlsafe_b64decode(padded_key)
        except ValueError as e:
            raise ValueError(f"Invalid base64-encoded encryption key: {type(e).__name__}") from e

        if len(decoded) != 32:
            raise ValueError("Encryption key must be 32 bytes (256 bits)")
        return decoded

    def encrypt_string(self, data: str) -> bytes:
        """Encrypt a string using the current key.

        Args:
            data: String to encrypt

        Returns:
            Encrypted bytes (magic + version + nonce + ciphertext)
        """
        nonce = os.urandom(self.NONCE_SIZE)
        ciphertext = self._current_aesgcm.encrypt(nonce, data.encode("utf-8"), None)

        version = len(self._key_chain) - 1  # Index of current key
        return self.MAGIC_BYTES + bytes([version]) + nonce + ciphertext

    def decrypt_string(self, encrypted_data: bytes) -> str:
        """Decrypt bytes to a string, trying the recorded key version first.

        Args:
            encrypted_data: Encrypted bytes

        Returns:
            Decrypted string

        Raises:
            ValueError: If decryption fails with all available keys
        """
        header_size = self.MAGIC_SIZE + self.VERSION_SIZE
        if (
            len(encrypted_data) < header_size + self.NONCE_SIZE + 1
            or encrypted_data[: self.MAGIC_SIZE] != self.MAGIC_BYTES
        ):
            raise ValueError("Invalid encrypted data")

        version = encrypted_data[self.MAGIC_SIZE]
        nonce = encrypted_data[header_size : header_size + self.NONCE_SIZE]
        ciphertext = encrypted_data[header_size + self.NONCE_SIZE :]

        candidates = list(reversed(self._key_chain))
        if version < len(self._key_chain):
            candidates.insert(0, self._key_chain[version])

        for key in candidates:
            try:
                plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
                return plaintext.decode("utf-8")
            except (InvalidTag, ValueError):
                continue

        raise ValueError("Decryption failed: no valid key found")

    def re_encrypt(self, encrypted_data: bytes) -> bytes:
        """Re-encrypt data with the current key.

        Useful for key rotation: decrypt with old key, re-encrypt with new key.
        """
        return self.encrypt_string(self.decrypt_string(encrypted_data))


# Global instance
_encryption_service: EncryptionService | None = None


def get_encryption_service() -> EncryptionService:
    """Get or create the encryption service singleton."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service
