"""
Unit Tests for Security Module
Tests for: password hashing, JWT tokens
"""
import pytest
from datetime import datetime, timedelta
from jose import jwt
from fastapi import HTTPException

from campus_erp.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from campus_erp.core.config import settings


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_password_returns_different_value(self):
        password = "testpassword123"
        hashed = get_password_hash(password)

        assert hashed != password
        assert len(hashed) > 0

    def test_hash_password_different_each_time(self):
        """Bcrypt salts every hash"""
        password = "testpassword123"

        assert get_password_hash(password) != get_password_hash(password)

    def test_verify_password_correct(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("wrongpassword", hashed) is False

    def test_hash_long_password_truncated(self):
        """Passwords beyond the 72 byte bcrypt limit still verify"""
        long_password = "a" * 100
        hashed = get_password_hash(long_password)

        assert verify_password(long_password, hashed) is True

    def test_hash_unicode_password(self):
        password = "mäktig-lösen-ørd"
        hashed = get_password_hash(password)

        assert verify_password(password, hashed) is True


class TestJWTTokens:
    """Test access and refresh tokens"""

    def test_access_token_carries_claims(self):
        token = create_access_token({"sub": "user-1", "email": "a@campus.edu", "role": "hr"})

        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        assert payload["sub"] == "user-1"
        assert payload["role"] == "hr"
        assert payload["type"] == "access"

    def test_access_token_default_expiry(self):
        before = datetime.utcnow()
        token = create_access_token({"sub": "user-1"})

        payload = decode_token(token)
        expires = datetime.utcfromtimestamp(payload["exp"])
        expected = before + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        assert abs((expires - expected).total_seconds()) < 5

    def test_refresh_token_type(self):
        payload = decode_token(create_refresh_token({"sub": "user-1"}))

        assert payload["type"] == "refresh"
        assert "role" not in payload

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401

    def test_token_signed_with_other_key_rejected(self):
        token = jwt.encode({"sub": "user-1", "type": "access"}, "another-key", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401
