"""Tests for TOTP secret encryption at rest."""

import base64
import os

import pytest

from twofactor_api.security.encryption import EncryptionService


def _key() -> str:
    return base64.urlsafe_b64encode(os.urandom(32)).decode()


class TestEncryptionService:
    """Tests for AES-GCM encryption with key versioning."""

    def test_round_trip(self) -> None:
        service = EncryptionService(current_key=_key(), legacy_keys=[])
        encrypted = service.encrypt_string("JBSWY3DPEHPK3PXP")

        assert b"JBSWY3DPEHPK3PXP" not in encrypted
        assert encrypted.startswith(EncryptionService.MAGIC_BYTES)
        assert service.decrypt_string(encrypted) == "JBSWY3DPEHPK3PXP"

    def test_nonce_is_random(self) -> None:
        service = EncryptionService(current_key=_key(), legacy_keys=[])
        assert service.encrypt_string("secret") != service.encrypt_string("secret")

    def test_key_rotation(self) -> None:
        """Data written with a retired key stays readable and can be re-encrypted."""
        old_key, new_key = _key(), _key()
        old = EncryptionService(current_key=old_key, legacy_keys=[])
        encrypted = old.encrypt_string("JBSWY3DPEHPK3PXP")

        rotated = EncryptionService(current_key=new_key, legacy_keys=[old_key])
        assert rotated.decrypt_string(encrypted) == "JBSWY3DPEHPK3PXP"

        re_encrypted = rotated.re_encrypt(encrypted)
        fresh = EncryptionService(current_key=new_key, legacy_keys=[])
        assert fresh.decrypt_string(re_encrypted) == "JBSWY3DPEHPK3PXP"

    def test_wrong_key_fails(self) -> None:
        encrypted = EncryptionService(current_key=_key(), legacy_keys=[]).encrypt_string("x")

        with pytest.raises(ValueError):
            EncryptionService(current_key=_key(), legacy_keys=[]).decrypt_string(encrypted)

    @pytest.mark.parametrize("data", [b"", b"garbage", b"\xEC\x01\x00short"])
    def test_malformed_data_fails(self, data: bytes) -> None:
        with pytest.raises(ValueError):
            EncryptionService(current_key=_key(), legacy_keys=[]).decrypt_string(data)

    def test_key_must_be_32_bytes(self) -> None:
        with pytest.raises(ValueError):
            EncryptionService(current_key=base64.urlsafe_b64encode(b"short").decode())
