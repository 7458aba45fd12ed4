from typing import Optional
from fastapi import Depends, Request, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import hmac
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.core.config import settings
from eventshare.core.exceptions import UnauthorizedError, ForbiddenError, NotFoundError
from eventshare.core.ids import parse_id
from eventshare.core.security import decode_token, is_token_revoked
from eventshare.db.session import get_session
from eventshare.db.models.user import User
from eventshare.db.repositories import users as user_repo

TOKEN_COOKIE = "token"

# auto_error=False so the token cookie can be used when no header is sent
security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the ``token`` cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE)


async def resolve_user(session: AsyncSession, token: str) -> User:
    """
    Resolve the user behind an access token.

    Raises:
        UnauthorizedError: If the token is revoked, invalid, not an access
            token, or its subject no longer exists
    """
    if await is_token_revoked(token):
        raise UnauthorizedError("Token has been revoked")

    try:
        payload = decode_token(token)
    except ValueError:
        raise UnauthorizedError("Could not validate credentials")

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")

    try:
        user_id = parse_id(payload.get("sub"), "User")
    except NotFoundError:
        raise UnauthorizedError("Could not validate credentials")

    user = await user_repo.get_user(session, user_id)
    if not user:
        raise UnauthorizedError("Could not validate credentials")
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> User:
    token = extract_token(request, credentials)
    if not token:
        raise UnauthorizedError("Not authenticated")
    return await resolve_user(session, token)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> Optional[User]:
    """Like ``get_current_user`` but anonymous callers (or bad tokens) yield None."""
    token = extract_token(request, credentials)
    if not token:
        return None
    try:
        return await resolve_user(session, token)
    except UnauthorizedError:
        return None


async def require_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
    """Admin endpoints are guarded by a static key in the ``X-API-Key`` header."""
    if not settings.ADMIN_API_KEY:
        raise ForbiddenError("Admin API is not configured")
    if not x_api_key or not hmac.compare_digest(x_api_key.encode(), settings.ADMIN_API_KEY.encode()):
        raise ForbiddenError("Invalid API key")
