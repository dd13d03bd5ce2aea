"""Tests for bearer token signing and masking."""

from datetime import datetime, timedelta, timezone

import jwt

from mlm_ledger.utils.security import (
    JWT_ALGORITHM,
    mask_sensitive,
    sign_token,
    verify_token,
)


SECRET = "unit-test-secret-key-of-32-bytes!"


class TestTokens:
    """Test JWT bearer tokens."""

    def test_round_trip(self):
        token = sign_token(42, SECRET)

        assert verify_token(token, SECRET) == 42

    def test_subject_is_account_id(self):
        token = sign_token(42, SECRET)

        payload = jwt.decode(token, SECRET, algorithms=[JWT_ALGORITHM])
        assert payload["sub"] == "42"
        assert payload["exp"] > payload["iat"]

    def test_wrong_secret(self):
        token = sign_token(42, SECRET)

        assert verify_token(token, "another-secret-key-also-32-bytes!") is None

    def test_expired(self):
        token = sign_token(42, SECRET, ttl_seconds=-10)

        assert verify_token(token, SECRET) is None

    def test_missing_expiry(self):
        token = jwt.encode({"sub": "42"}, SECRET, algorithm=JWT_ALGORITHM)

        assert verify_token(token, SECRET) is None

    def test_non_numeric_subject(self):
        expires = datetime.now(timezone.utc) + timedelta(minutes=5)
        token = jwt.encode({"sub": "admin", "exp": expires}, SECRET, algorithm=JWT_ALGORITHM)

        assert verify_token(token, SECRET) is None

    def test_unsigned_token_rejected(self):
        expires = datetime.now(timezone.utc) + timedelta(minutes=5)
        token = jwt.encode({"sub": "42", "exp": expires}, None, algorithm="none")

        assert verify_token(token, SECRET) is None

    def test_malformed(self):
        assert verify_token(None, SECRET) is None
        assert verify_token("", SECRET) is None
        assert verify_token("abc", SECRET) is None
        assert verify_token("42.9999999999.deadbeef", SECRET) is None


class TestMasking:
    """Test sensitive value masking."""

    def test_mask(self):
        assert mask_sensitive("my_secret_key_1234567890") == "my_s...7890"

    def test_short_values(self):
        assert mask_sensitive("short") == "***"
        assert mask_sensitive(None) == "***"
