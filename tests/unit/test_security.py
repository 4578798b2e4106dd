"""
Unit tests for password hashing and access tokens.
"""

from datetime import timedelta

import pytest

from mediasearch.security import (
    InvalidTokenError,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)

SECRET = "unit-test-secret"


class TestPasswords:

    def test_hash_verifies(self):
        hashed = get_password_hash("correct-horse")

        assert hashed != "correct-horse"
        assert verify_password("correct-horse", hashed)
        assert not verify_password("wrong", hashed)

    def test_hashes_are_salted(self):
        assert get_password_hash("same") != get_password_hash("same")


class TestTokens:

    def test_round_trip(self):
        token = create_access_token({"sub": "user-1"}, SECRET)

        payload = decode_access_token(token, SECRET)

        assert payload["sub"] == "user-1"
        assert payload["exp"] > payload["iat"]

    def test_wrong_secret(self):
        token = create_access_token({"sub": "user-1"}, SECRET)

        with pytest.raises(InvalidTokenError):
            decode_access_token(token, "other-secret")

    def test_expired(self):
        token = create_access_token({"sub": "user-1"}, SECRET, expires_delta=timedelta(seconds=-10))

        with pytest.raises(InvalidTokenError):
            decode_access_token(token, SECRET)

    def test_missing_subject(self):
        token = create_access_token({"role": "user"}, SECRET)

        with pytest.raises(InvalidTokenError):
            decode_access_token(token, SECRET)

    def test_garbage(self):
        with pytest.raises(InvalidTokenError):
            decode_access_token("not.a.token", SECRET)
