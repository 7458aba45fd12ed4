"""Authentication routes: registration, login, tokens and email verification."""
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.auth import TOKEN_COOKIE, extract_token, get_current_user, security
from eventshare.core.config import settings
from eventshare.core.exceptions import UnauthorizedError
from eventshare.core.rate_limit import limiter
from eventshare.db.models.user import User
from eventshare.db.session import get_session
from eventshare.schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    ResendVerificationRequest,
    Token,
    UserCreate,
    UserOut,
    VerifyEmailRequest,
)
from eventshare.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(session: AsyncSession = Depends(get_session)) -> AuthService:
    return AuthService(session)


def set_token_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
async def register(
    request: Request,
    response: Response,
    payload: UserCreate,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new account and email its verification code.

    Rate limit: 3 requests per minute
    """
    result = await auth_service.register(payload)
    set_token_cookie(response, result["access_token"])
    return result


@router.post("/login", response_model=AuthResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    response: Response,
    form_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Login endpoint returning access and refresh tokens.

    Rate limit: 5 requests per minute
    """
    result = await auth_service.login(form_data)
    set_token_cookie(response, result["access_token"])
    return result


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_access_token(
    request: Request,
    payload: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Refresh access token using refresh token.

    Rate limit: 10 requests per minute
    """
    return await auth_service.refresh_access_token(payload.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Revoke the current access token and clear the token cookie.
    """
    token = extract_token(request, credentials)
    if not token:
        raise UnauthorizedError("Not authenticated")
    await auth_service.logout(token)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(TOKEN_COOKIE)
    return response


@router.get("/me", response_model=UserOut)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/verify-email", response_model=UserOut)
@limiter.limit("5/minute")
async def verify_email(
    request: Request,
    payload: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Confirm an email address with the 6-digit code.

    Rate limit: 5 requests per minute
    """
    return await auth_service.verify_email(payload.email, payload.code)


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit("5/minute")
async def resend_verification(
    request: Request,
    payload: ResendVerificationRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Send a fresh verification code. At most one code per cooldown window.

    Rate limit: 5 requests per minute
    """
    await auth_service.resend_verification(payload.email)
    return {"message": "Verification code sent"}
