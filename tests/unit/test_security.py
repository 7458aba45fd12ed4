"""
Unit tests for the security module.
Tests password validation, hashing, JWT tokens, revocation and verification codes.
"""
import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt

from eventshare.core.security import (
    as_utc,
    create_access_token,
    create_refresh_token,
    create_token_pair,
    decode_token,
    default_avatar_url,
    generate_verification_code,
    hash_password,
    is_token_revoked,
    revoke_token,
    validate_password,
    verification_code_matches,
    verify_password,
)
from eventshare.core.config import settings


@pytest.mark.unit
class TestPasswordValidation:
    """Test password validation functionality."""

    def test_valid_password(self):
        """Valid passwords pass validation."""
        for password in ["Test123!@#", "MyP@ssw0rd", "Secur3#Pass"]:
            validate_password(password)  # Should not raise

    def test_password_too_short(self):
        with pytest.raises(ValueError, match="at least 8 characters"):
            validate_password("Te1!")

    def test_password_no_uppercase(self):
        with pytest.raises(ValueError, match="uppercase letter"):
            validate_password("test123!@#")

    def test_password_no_lowercase(self):
        with pytest.raises(ValueError, match="lowercase letter"):
            validate_password("TEST123!@#")

    def test_password_no_digit(self):
        with pytest.raises(ValueError, match="digit"):
            validate_password("TestPass!@#")

    def test_password_no_special_char(self):
        with pytest.raises(ValueError, match="special character"):
            validate_password("TestPass123")


@pytest.mark.unit
class TestPasswordHashing:
    """Hashing goes through the (mocked) passlib context."""

    def test_hash_and_verify(self):
        hashed = hash_password("Test123!@#")
        assert hashed != "Test123!@#"
        assert verify_password("Test123!@#", hashed)
        assert not verify_password("Wrong123!@#", hashed)


@pytest.mark.unit
class TestJWTTokens:
    """Test JWT token creation and validation."""

    def test_access_token_claims(self):
        token = create_access_token({"sub": "user-123"})
        payload = decode_token(token)

        assert payload["sub"] == "user-123"
        assert payload["type"] == "access"
        assert "exp" in payload

    def test_refresh_token_type(self):
        payload = decode_token(create_refresh_token({"sub": "user-123"}))
        assert payload["type"] == "refresh"

    def test_token_pair(self):
        pair = create_token_pair("user-123")

        assert pair["token_type"] == "bearer"
        assert decode_token(pair["access_token"])["type"] == "access"
        assert decode_token(pair["refresh_token"])["type"] == "refresh"

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user-123"}, expires_delta=timedelta(seconds=-5))
        with pytest.raises(ValueError, match="expired"):
            decode_token(token)

    def test_tampered_token_rejected(self):
        token = jwt.encode({"sub": "user-123"}, "another-secret", algorithm=settings.ALGORITHM)
        with pytest.raises(ValueError, match="Invalid token"):
            decode_token(token)

    def test_token_without_subject_rejected(self):
        token = jwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )
        with pytest.raises(ValueError, match="missing 'sub'"):
            decode_token(token)


@pytest.mark.unit
@pytest.mark.asyncio
class TestTokenRevocation:
    """Revocation list backed by the cache."""

    async def test_revoke_token(self, fake_cache):
        token = create_access_token({"sub": "user-123"})
        assert not await is_token_revoked(token)

        assert await revoke_token(token)

        assert await is_token_revoked(token)
        assert f"revoked_token:{token}" in fake_cache.store

    async def test_revoke_invalid_token_is_noop(self, fake_cache):
        assert not await revoke_token("not-a-jwt")
        assert fake_cache.store == {}


@pytest.mark.unit
class TestVerificationCodes:
    def test_code_is_six_digits(self):
        for _ in range(20):
            code = generate_verification_code()
            assert len(code) == 6
            assert code.isdigit()

    def test_code_matching(self):
        assert verification_code_matches("123456", "123456")
        assert verification_code_matches("123456", " 123456 ")
        assert not verification_code_matches("123456", "654321")
        assert not verification_code_matches(None, "123456")
        assert not verification_code_matches("123456", "")

    def test_as_utc_attaches_timezone(self):
        naive = datetime(2026, 1, 1, 12, 0)
        assert as_utc(naive).tzinfo == timezone.utc
        assert as_utc(None) is None

    def test_default_avatar_url(self):
        assert default_avatar_url("Jane Doe").endswith("seed=JaneDoe")
