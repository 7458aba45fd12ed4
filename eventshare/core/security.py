"""
Password hashing, JWT access/refresh tokens, token revocation and
one-time email verification codes.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from jose import jwt, JWTError
from passlib.context import CryptContext
from eventshare.core.config import settings
from eventshare.cache import redis_client

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from databases without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def validate_password(password: str) -> None:
    """
    Validate password strength.

    Raises:
        ValueError: If password doesn't meet strength requirements
    """
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")

    if not any(c.isupper() for c in password):
        raise ValueError("Password must contain at least one uppercase letter")

    if not any(c.islower() for c in password):
        raise ValueError("Password must contain at least one lowercase letter")

    if not any(c.isdigit() for c in password):
        raise ValueError("Password must contain at least one digit")

    if not any(c in SPECIAL_CHARACTERS for c in password):
        raise ValueError("Password must contain at least one special character")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain, hashed)


def hash_password(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; ``sub`` must carry the user id
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(data: Dict) -> str:
    """Create a JWT refresh token with longer expiration."""
    to_encode = data.copy()
    expire = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_token_pair(user_id) -> Dict[str, str]:
    token_data = {"sub": str(user_id)}
    return {
        "access_token": create_access_token(token_data),
        "refresh_token": create_refresh_token(token_data),
        "token_type": "bearer",
    }


def decode_token(token: str) -> Dict:
    """
    Decode and validate a JWT token.

    Raises:
        ValueError: If token is invalid, expired or lacks a subject
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise ValueError("Token has expired")
    except JWTError as e:
        raise ValueError(f"Invalid token: {str(e)}")

    if "sub" not in payload:
        raise ValueError("Invalid token payload: missing 'sub' field")

    return payload


async def revoke_token(token: str, expiry: Optional[int] = None) -> bool:
    """
    Add token to revocation list in Redis.

    Args:
        token: Token to revoke
        expiry: Optional TTL in seconds (defaults to the token's remaining lifetime)
    """
    if expiry:
        return await redis_client.cache.set(f"revoked_token:{token}", True, expire=expiry)

    try:
        payload = decode_token(token)
    except ValueError:
        # already unusable
        return False

    exp = payload.get("exp")
    if exp:
        ttl = int(exp) - int(utcnow().timestamp())
        if ttl > 0:
            return await redis_client.cache.set(f"revoked_token:{token}", True, expire=ttl)
    return False


async def is_token_revoked(token: str) -> bool:
    return await redis_client.cache.exists(f"revoked_token:{token}")


def generate_verification_code() -> str:
    """Six-digit numeric code for email verification."""
    return f"{secrets.randbelow(900000) + 100000}"


def verification_code_matches(expected: Optional[str], provided: str) -> bool:
    if not expected or not provided:
        return False
    return secrets.compare_digest(expected.encode(), provided.strip().encode())


def default_avatar_url(name: str) -> str:
    seed = (name or "").replace(" ", "")
    return f"https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"
