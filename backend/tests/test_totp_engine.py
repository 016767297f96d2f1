"""Tests for the TOTP engine."""

from datetime import datetime, timedelta, timezone

import pyotp
import pytest

from twofactor_api.services.totp_engine import TotpEngine

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine() -> TotpEngine:
    return TotpEngine(valid_window=2)


class TestSecretGeneration:
    """Tests for secret generation."""

    def test_secret_is_base32(self, engine: TotpEngine) -> None:
        """Generated secrets decode as base32 and carry 160 bits."""
        secret = engine.generate_secret()

        assert len(secret) == 32
        assert set(secret) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
        assert len(pyotp.TOTP(secret).byte_secret()) == 20

    def test_secrets_are_unique(self, engine: TotpEngine) -> None:
        """Each call yields a fresh secret."""
        assert len({engine.generate_secret() for _ in range(20)}) == 20


class TestVerify:
    """Tests for token verification."""

    def test_current_code_verifies(self, engine: TotpEngine) -> None:
        secret = engine.generate_secret()
        assert engine.verify(secret, pyotp.TOTP(secret).at(NOW), for_time=NOW)

    @pytest.mark.parametrize("steps", [-2, -1, 1, 2])
    def test_codes_within_window_verify(self, engine: TotpEngine, steps: int) -> None:
        """Codes up to two steps away absorb clock drift."""
        secret = engine.generate_secret()
        token = pyotp.TOTP(secret).at(NOW + timedelta(seconds=30 * steps))

        assert engine.verify(secret, token, for_time=NOW)

    @pytest.mark.parametrize("steps", [-4, -3, 3, 4])
    def test_codes_outside_window_fail(self, engine: TotpEngine, steps: int) -> None:
        secret = engine.generate_secret()
        totp = pyotp.TOTP(secret)
        token = totp.at(NOW + timedelta(seconds=30 * steps))
        in_window = {totp.at(NOW + timedelta(seconds=30 * s)) for s in range(-2, 3)}
        if token in in_window:
            pytest.skip("code collided with an in-window code")

        assert not engine.verify(secret, token, for_time=NOW)

    def test_zero_window_accepts_only_current_step(self) -> None:
        engine = TotpEngine(valid_window=0)
        secret = engine.generate_secret()
        totp = pyotp.TOTP(secret)
        previous = totp.at(NOW - timedelta(seconds=30))
        if previous == totp.at(NOW):
            pytest.skip("adjacent codes collided")

        assert engine.verify(secret, totp.at(NOW), for_time=NOW)
        assert not engine.verify(secret, previous, for_time=NOW)

    @pytest.mark.parametrize(
        "token",
        ["", "12345", "1234567", "abcdef", "12 456", "12345a", "１２３４５６"],
    )
    def test_malformed_token_fails(self, engine: TotpEngine, token: str) -> None:
        """Non-numeric or wrong-length tokens fail instead of raising."""
        secret = engine.generate_secret()
        assert engine.verify(secret, token, for_time=NOW) is False

    @pytest.mark.parametrize("secret", ["", "not base32!", "1111", "ABC"])
    def test_malformed_secret_fails(self, engine: TotpEngine, secret: str) -> None:
        assert engine.verify(secret, "123456", for_time=NOW) is False

    def test_lowercase_secret_accepted(self, engine: TotpEngine) -> None:
        secret = engine.generate_secret()
        token = pyotp.TOTP(secret).at(NOW)

        assert engine.verify(secret.lower(), token, for_time=NOW)

    def test_code_at_matches_pyotp(self, engine: TotpEngine) -> None:
        secret = engine.generate_secret()
        assert engine.at(secret, NOW) == pyotp.TOTP(secret).at(NOW)


class TestProvisioningUri:
    """Tests for otpauth URI construction."""

    def test_minimal_uri(self) -> None:
        uri = TotpEngine.provisioning_uri("jane.doe", "JBSWY3DPEHPK3PXP", "ERP")
        assert uri == "otpauth://totp/jane.doe?secret=JBSWY3DPEHPK3PXP&issuer=ERP"

    def test_padding_stripped(self) -> None:
        uri = TotpEngine.provisioning_uri("jdoe", "JBSWY3DPEHPK3PXP====", "ERP")
        assert "secret=JBSWY3DPEHPK3PXP&" in uri

    def test_encoded_uri(self) -> None:
        """Only the account label and issuer are escaped."""
        uri = TotpEngine.provisioning_uri(
            "jane doe", "JBSWY3DPEHPK3PXP", "Acme ERP/EU", encode=True
        )

        assert uri == (
            "otpauth://totp/jane%20doe?secret=JBSWY3DPEHPK3PXP&issuer=Acme%20ERP%2FEU"
        )

    def test_encoded_uri_parses_with_pyotp(self) -> None:
        """The encoded form still enrolls an authenticator app."""
        uri = TotpEngine.provisioning_uri(
            "jane doe", "JBSWY3DPEHPK3PXP", "Acme ERP", encode=True
        )
        totp = pyotp.parse_uri(uri)

        assert totp.secret == "JBSWY3DPEHPK3PXP"
        assert totp.issuer == "Acme ERP"
        assert totp.name == "jane doe"

    def test_uri_parses_with_pyotp(self) -> None:
        """Authenticator apps can read the minimal URI."""
        uri = TotpEngine.provisioning_uri("jdoe", "JBSWY3DPEHPK3PXP", "ERP")
        totp = pyotp.parse_uri(uri)

        assert totp.secret == "JBSWY3DPEHPK3PXP"
        assert totp.issuer == "ERP"
        assert totp.interval == 30
        assert totp.digits == 6
