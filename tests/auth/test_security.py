"""Tests for auth security functions."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from argon2 import PasswordHasher
from jose import JWTError, jwt

from blog.auth.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from blog.config import get_settings


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_password_creates_hash(self) -> None:
        """Hash should be different from plain password."""
        password = "SecureP@ssword123"
        hashed = hash_password(password)
        assert hashed != password
        assert hashed.startswith("$argon2id$")

    def test_hash_password_unique_hashes(self) -> None:
        """Same password should produce different hashes (due to salt)."""
        assert hash_password("secret123") != hash_password("secret123")

    def test_verify_password_correct(self) -> None:
        hashed = hash_password("secret123")
        is_valid, new_hash = verify_password("secret123", hashed)
        assert is_valid is True
        assert new_hash is None  # No rehash needed for fresh hash

    def test_verify_password_incorrect(self) -> None:
        hashed = hash_password("secret123")
        assert verify_password("wrong-password", hashed) == (False, None)

    def test_verify_password_garbage_hash(self) -> None:
        """A corrupt stored hash fails verification instead of raising."""
        assert verify_password("secret123", "not-a-hash") == (False, None)

    def test_outdated_hash_is_upgraded(self) -> None:
        """Hashes made with weaker parameters come back rehashed."""
        weak = PasswordHasher(time_cost=1, memory_cost=8192, parallelism=1)
        is_valid, new_hash = verify_password("secret123", weak.hash("secret123"))
        assert is_valid is True
        assert new_hash is not None
        assert verify_password("secret123", new_hash) == (True, None)


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        user_id = uuid4()
        token = create_access_token({"sub": str(user_id), "username": "ana"})

        payload = decode_access_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["username"] == "ana"
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        token = create_access_token(
            {"sub": str(uuid4())}, expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": str(uuid4()),
                "type": "refresh",
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_access_token_wrong_key(self) -> None:
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "access"},
            "some-other-signing-key-with-enough-length",
            algorithm="HS256",
        )
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_missing_subject_rejected(self) -> None:
        token = create_access_token({"email": "a@example.com"})
        with pytest.raises(JWTError, match="sub"):
            decode_access_token(token)
