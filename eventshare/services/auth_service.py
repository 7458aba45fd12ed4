"""Authentication service: registration, login, tokens and email verification."""
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.schemas import UserCreate, LoginRequest
from eventshare.core.config import settings
from eventshare.core.exceptions import (
    UnauthorizedError,
    ConflictError,
    NotFoundError,
    ValidationFailedError,
    TooManyRequestsError,
    UnavailableError,
)
from eventshare.core.ids import parse_id
from eventshare.core.logging import logger
from eventshare.core.security import (
    as_utc,
    create_access_token,
    create_token_pair,
    decode_token,
    default_avatar_url,
    generate_verification_code,
    hash_password,
    revoke_token,
    utcnow,
    validate_password,
    verification_code_matches,
    verify_password,
)
from eventshare.db.models import User
from eventshare.db.repositories import users as user_repo
from eventshare.services import email_service as email_module


class AuthService:
    """
    Service layer for authentication operations.

    Handles registration, login, token refresh/logout and the one-time
    verification code sent by email.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _send_verification_code(self, user: User) -> bool:
        return await email_module.email_service.send_email(
            user.email,
            "verification_code",
            {
                "name": user.name,
                "code": user.verification_code,
                "ttl_minutes": settings.VERIFICATION_CODE_TTL_MINUTES,
            },
        )

    async def register(self, payload: UserCreate) -> dict:
        """
        Create an account and email its verification code.

        Returns:
            Token pair plus the created user

        Raises:
            ValidationFailedError: If the password is weak
            ConflictError: If the email is already registered
        """
        try:
            validate_password(payload.password)
        except ValueError as e:
            raise ValidationFailedError(str(e))

        email = payload.email.strip().lower()
        if await user_repo.get_user_by_email(self.session, email):
            raise ConflictError("Email already registered")

        now = utcnow()
        user = await user_repo.create_user(
            self.session,
            name=payload.name,
            email=email,
            hashed_password=hash_password(payload.password),
            profile_image=default_avatar_url(payload.name),
            verification_code=generate_verification_code(),
            verification_code_expires_at=now + timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES),
            verification_code_sent_at=now,
        )
        logger.info(f"Registered user {user.id}")

        try:
            await self._send_verification_code(user)
        except email_module.EmailDeliveryError as e:
            logger.error(f"Verification email for user {user.id} failed: {e}")

        return {**create_token_pair(user.id), "user": user}

    async def login(self, form_data: LoginRequest) -> dict:
        user = await user_repo.get_user_by_email(self.session, form_data.email)
        if not user or not verify_password(form_data.password, user.hashed_password):
            raise UnauthorizedError("Incorrect credentials")
        logger.info(f"User {user.id} logged in")
        return {**create_token_pair(user.id), "user": user}

    async def refresh_access_token(self, refresh_token: str) -> dict:
        """
        Issue a new access token from a valid refresh token.

        Raises:
            UnauthorizedError: If the refresh token is invalid, of the wrong
                type, or its user no longer exists
        """
        try:
            token_data = decode_token(refresh_token)
        except ValueError:
            raise UnauthorizedError("Invalid refresh token")

        if token_data.get("type") != "refresh":
            raise UnauthorizedError("Invalid token type")

        try:
            user_id = parse_id(token_data["sub"], "User")
        except NotFoundError:
            raise UnauthorizedError("Invalid refresh token")
        if not await user_repo.get_user(self.session, user_id):
            raise UnauthorizedError("Invalid refresh token")

        return {
            "access_token": create_access_token({"sub": str(user_id)}),
            "token_type": "bearer",
        }

    async def logout(self, token: str) -> None:
        await revoke_token(token)

    async def verify_email(self, email: str, code: str) -> User:
        user = await user_repo.get_user_by_email(self.session, email)
        if not user:
            raise NotFoundError("User not found")
        if user.is_email_verified:
            raise ConflictError("Email already verified")
        if not verification_code_matches(user.verification_code, code):
            raise ValidationFailedError("Invalid verification code")
        expires_at = as_utc(user.verification_code_expires_at)
        if expires_at is None or expires_at < utcnow():
            raise ValidationFailedError("Verification code has expired")

        user = await user_repo.update_user(
            self.session,
            user,
            is_email_verified=True,
            verification_code=None,
            verification_code_expires_at=None,
        )
        logger.info(f"User {user.id} verified their email")

        try:
            await email_module.email_service.send_email(user.email, "welcome", {"name": user.name})
        except email_module.EmailDeliveryError as e:
            logger.warning(f"Welcome email for user {user.id} failed: {e}")
        return user

    async def resend_verification(self, email: str) -> None:
        """
        Issue and email a fresh code.

        Raises:
            NotFoundError: Unknown email
            ConflictError: Already verified
            TooManyRequestsError: Previous code sent within the cooldown window
            UnavailableError: The email could not be delivered
        """
        user = await user_repo.get_user_by_email(self.session, email)
        if not user:
            raise NotFoundError("User not found")
        if user.is_email_verified:
            raise ConflictError("Email already verified")

        now = utcnow()
        sent_at = as_utc(user.verification_code_sent_at)
        cooldown = timedelta(minutes=settings.VERIFICATION_RESEND_COOLDOWN_MINUTES)
        if sent_at is not None and now - sent_at < cooldown:
            wait_seconds = int((sent_at + cooldown - now).total_seconds()) + 1
            raise TooManyRequestsError(f"Please wait {wait_seconds} seconds before requesting a new code")

        user = await user_repo.update_user(
            self.session,
            user,
            verification_code=generate_verification_code(),
            verification_code_expires_at=now + timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES),
            verification_code_sent_at=now,
        )
        try:
            await self._send_verification_code(user)
        except email_module.EmailDeliveryError:
            # let the caller retry immediately
            await user_repo.update_user(self.session, user, verification_code_sent_at=None)
            raise UnavailableError("Could not send verification email, please try again later")
        logger.info(f"Resent verification code to user {user.id}")
