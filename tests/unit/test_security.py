"""
Tests for password hashing, token fingerprints and MAC normalization.
"""

import pytest

from nac_api.core.errors import BadRequestError
from nac_api.core.security import (
    get_password_hash,
    hash_token,
    normalize_mac,
    validate_password_strength,
    verify_password,
)


@pytest.mark.unit
class TestPasswordHashing:
    """Tests for bcrypt password hashing."""

    def test_hash_verifies(self):
        hashed = get_password_hash("Password123", rounds=4)
        assert verify_password("Password123", hashed)

    def test_hash_never_contains_plaintext(self):
        hashed = get_password_hash("Password123", rounds=4)
        assert "Password123" not in hashed
        assert hashed.startswith("$2b$04$")

    def test_same_password_hashes_differ(self):
        """Each hash gets a fresh salt."""
        first = get_password_hash("Password123", rounds=4)
        second = get_password_hash("Password123", rounds=4)
        assert first != second
        assert verify_password("Password123", first)
        assert verify_password("Password123", second)

    def test_wrong_password_rejected(self):
        hashed = get_password_hash("Password123", rounds=4)
        assert not verify_password("Password124", hashed)

    def test_long_password_supported(self):
        """Passwords over bcrypt's 72 byte limit are pre-hashed, not truncated."""
        long_password = "a1" * 60
        hashed = get_password_hash(long_password, rounds=4)
        assert verify_password(long_password, hashed)
        assert not verify_password(long_password[:72], hashed)

    def test_malformed_hash_is_false(self):
        assert verify_password("Password123", "not-a-bcrypt-hash") is False


@pytest.mark.unit
class TestPasswordStrength:
    @pytest.mark.parametrize(
        "password,message",
        [
            ("short1", "at least 8 characters"),
            ("onlyletters", "at least one digit"),
            ("12345678", "at least one letter"),
        ],
    )
    def test_weak_passwords(self, password, message):
        is_valid, error = validate_password_strength(password)
        assert not is_valid
        assert message in error

    def test_strong_password(self):
        assert validate_password_strength("Password123") == (True, None)


@pytest.mark.unit
class TestHashToken:
    def test_deterministic_sha256_hex(self):
        assert hash_token("abc") == hash_token("abc")
        assert len(hash_token("abc")) == 64
        assert hash_token("abc") != hash_token("abd")


@pytest.mark.unit
class TestNormalizeMac:
    @pytest.mark.parametrize(
        "raw",
        [
            "aa:bb:cc:dd:ee:ff",
            "AA-BB-CC-DD-EE-FF",
            "aabb.ccdd.eeff",
            "AABBCCDDEEFF",
            "  aa:bb:cc:dd:ee:ff  ",
        ],
    )
    def test_accepted_forms(self, raw):
        assert normalize_mac(raw) == "AA:BB:CC:DD:EE:FF"

    @pytest.mark.parametrize(
        "raw",
        ["", "aa:bb:cc:dd:ee", "aa:bb-cc:dd:ee:ff", "gg:hh:ii:jj:kk:ll", "aabbccddeeff00"],
    )
    def test_rejected_forms(self, raw):
        with pytest.raises(BadRequestError):
            normalize_mac(raw)
