"""Tests for JWT token creation and validation."""
import pytest
import time
from datetime import timedelta
from jose import jwt, JWTError


class TestJWTTokens:
    """Test JWT access token behavior."""

    def test_create_access_token(self):
        """Access token should contain sub and email claims."""
        from app.api.deps import create_access_token
        token = create_access_token(data={"sub": "1", "email": "test@example.com"})
        assert isinstance(token, str)
        assert len(token) > 50

    def test_access_token_decode(self):
        """Access token should be decodable with correct secret."""
        from app.api.deps import decode_access_token, create_access_token
        token = create_access_token(data={"sub": "42", "email": "user@test.com"})
        token_data = decode_access_token(token)
        assert token_data.user_id == 42
        assert token_data.email == "user@test.com"

    def test_access_token_expiry(self):
        """Access token should have correct expiration time."""
        from app.api.deps import create_access_token
        from app.config import settings
        token = create_access_token(data={"sub": "1", "email": "test@test.com"})
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        # ACCESS_TOKEN_EXPIRE_MINUTES defaults to 120 min = 7200 sec
        assert 7000 < (payload["exp"] - time.time()) < 7300

    def test_access_token_custom_expiry(self):
        """Should support custom expiration delta."""
        from app.api.deps import create_access_token
        from app.config import settings
        token = create_access_token(
            data={"sub": "1", "email": "test@test.com"},
            expires_delta=timedelta(minutes=30),
        )
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        assert 1700 < (payload["exp"] - time.time()) < 1900

    def test_wrong_secret_fails(self):
        """Token decoded with wrong secret should fail."""
        from app.api.deps import create_access_token
        token = create_access_token(data={"sub": "1", "email": "test@test.com"})
        with pytest.raises(JWTError):
            jwt.decode(token, "wrong-secret-key", algorithms=["HS256"])

    def test_token_without_subject_rejected(self):
        from app.api.deps import decode_access_token
        from app.config import settings
        token = jwt.encode({"email": "x@test.com"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
        with pytest.raises(ValueError):
            decode_access_token(token)


class TestPasswords:
    def test_hash_and_verify(self):
        from app.api.deps import get_password_hash, verify_password
        hashed = get_password_hash("s3cret-pass")
        assert verify_password("s3cret-pass", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_malformed_hash(self):
        from app.api.deps import verify_password
        assert verify_password("anything", "not-a-bcrypt-hash") is False

