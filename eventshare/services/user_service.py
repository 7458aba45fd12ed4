from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.core.config import settings
from eventshare.core.exceptions import NotFoundError, ValidationFailedError, UnavailableError
from eventshare.core.ids import parse_id
from eventshare.core.logging import logger
from eventshare.core.security import default_avatar_url, hash_password, validate_password, verify_password
from eventshare.db.models import User
from eventshare.db.repositories import users as user_repo
from eventshare.schemas import ProfileUpdate
from eventshare.services import storage

PROFILE_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}



class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def update_profile(self, user: User, payload: ProfileUpdate) -> User:
        updates = payload.model_dump(exclude_unset=True)
        if "name" in updates:
            name = (updates["name"] or "").strip()
            if not name:
                raise ValidationFailedError("Name must not be blank")
            updates["name"] = name
        if not updates:
            return user
        return await user_repo.update_user(self.session, user, **updates)

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise ValidationFailedError("Current password is incorrect")
        if current_password == new_password:
            raise ValidationFailedError("New password must be different from the current password")
        try:
            validate_password(new_password)
        except ValueError as e:
            raise ValidationFailedError(str(e))
        await user_repo.update_user(self.session, user, hashed_password=hash_password(new_password))
        logger.info(f"User {user.id} changed their password")

    async def upload_profile_image(self, user: User, file: UploadFile) -> User:
        """
        Store a new profile image, then best-effort delete the previous one.
        """
        if file.content_type not in PROFILE_IMAGE_TYPES:
            raise ValidationFailedError("Profile image must be a JPEG, PNG or WebP image")
        data = await storage.read_upload(file, settings.MAX_IMAGE_UPLOAD_MB * 1024 * 1024)

        try:
            stored = await storage.media_storage.store(data, f"profiles/{user.id}", file.filename, file.content_type)
        except storage.StorageError:
            raise UnavailableError("Could not store profile image")

        previous_id = user.profile_image_id
        user = await user_repo.update_user(
            self.session, user, profile_image=stored.url, profile_image_id=stored.id
        )
        if previous_id:
            await storage.media_storage.delete(previous_id)
        return user

    async def delete_profile_image(self, user: User) -> User:
        previous_id = user.profile_image_id
        user = await user_repo.update_user(
            self.session, user, profile_image=default_avatar_url(user.name), profile_image_id=None
        )
        if previous_id:
            await storage.media_storage.delete(previous_id)
        return user

    async def get_stats(self, user_id: str) -> dict:
        uid = parse_id(user_id, "User")
        if not await user_repo.get_user(self.session, uid):
            raise NotFoundError(f"User not found with id of {user_id}")
        return await user_repo.get_user_stats(self.session, uid)
