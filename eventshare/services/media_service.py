from typing import Optional, List, Tuple
from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.cache.cache_decorators import invalidate_user_stats
from eventshare.core.config import settings
from eventshare.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnavailableError,
    ValidationFailedError,
)
from eventshare.core.ids import parse_id
from eventshare.core.logging import logger
from eventshare.db.models import Event, Media, MediaTypeEnum, User
from eventshare.db.repositories import events as event_repo, media as media_repo
from eventshare.events import publisher
from eventshare.schemas import MediaOut, MediaUpdate
from eventshare.services import access_control, storage


def parse_tags(raw: Optional[str]) -> List[str]:
    """Comma-separated tags, trimmed, blanks and duplicates dropped."""
    if not raw:
        return []
    tags = []
    for tag in raw.split(","):
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def media_type_for(content_type: Optional[str]) -> MediaTypeEnum:
    content_type = content_type or ""
    if content_type.startswith("image/"):
        return MediaTypeEnum.image
    if content_type.startswith("video/"):
        return MediaTypeEnum.video
    raise ValidationFailedError(f"Unsupported file type {content_type or 'unknown'}; only images and videos are allowed")


class MediaService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _viewable_event(self, event_id, user: Optional[User]) -> Event:
        event = await event_repo.get_event(self.session, event_id)
        if not event:
            raise NotFoundError(f"Event not found with id of {event_id}")
        is_participant = await event_repo.is_participant(self.session, event.id, user.id if user else None)
        access_control.ensure_can_view(event, user, is_participant)
        return event

    async def get_media_or_404(self, media_id) -> Media:
        uid = parse_id(media_id, "Media")
        media = await media_repo.get_media(self.session, uid)
        if not media:
            raise NotFoundError(f"Media not found with id of {media_id}")
        return media

    async def upload(
        self,
        event_id: str,
        files: List[UploadFile],
        user: User,
        caption: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> List[Media]:
        """
        Store up to ``MAX_FILES_PER_UPLOAD`` images/videos for an event.

        All files are validated before anything is stored. If a store fails
        the files already written are removed and the call fails as a whole.
        """
        event = await self._viewable_event(parse_id(event_id, "Event"), user)
        event_uuid, user_id = event.id, user.id

        if not files:
            raise ValidationFailedError("No files uploaded")
        if len(files) > settings.MAX_FILES_PER_UPLOAD:
            raise ValidationFailedError(f"At most {settings.MAX_FILES_PER_UPLOAD} files can be uploaded at once")
        if caption is not None and len(caption) > 500:
            raise ValidationFailedError("Caption must be at most 500 characters")

        max_bytes = settings.MAX_MEDIA_UPLOAD_MB * 1024 * 1024
        prepared = []
        for file in files:
            media_type = media_type_for(file.content_type)
            data = await storage.read_upload(file, max_bytes)
            prepared.append((file, media_type, data))

        tag_list = parse_tags(tags)
        stored_objects = []
        try:
            for file, media_type, data in prepared:
                stored = await storage.media_storage.store(
                    data, f"events/{event_uuid}", file.filename, file.content_type
                )
                stored_objects.append((file, media_type, stored))
        except storage.StorageError:
            for _, _, stored in stored_objects:
                await storage.media_storage.delete(stored.id)
            raise UnavailableError("Could not store uploaded media, please try again")

        items = [
            {
                "event_id": event_uuid,
                "uploaded_by": user_id,
                "type": media_type,
                "filename": file.filename or stored.id.rsplit("/", 1)[-1],
                "storage_id": stored.id,
                "url": stored.url,
                "caption": caption or None,
                "tags": tag_list,
                "likes": 0,
            }
            for file, media_type, stored in stored_objects
        ]
        try:
            media = await media_repo.create_media_items(self.session, items)
        except SQLAlchemyError as e:
            logger.error(f"Saving media for event {event_uuid} failed: {e}")
            for _, _, stored in stored_objects:
                await storage.media_storage.delete(stored.id)
            raise UnavailableError("Could not save uploaded media, please try again")

        await invalidate_user_stats(user_id)
        logger.info(f"User {user_id} uploaded {len(media)} media items to event {event_uuid}")
        return media

    async def list_event_media(
        self,
        event_id: str,
        user: Optional[User],
        media_filter: Optional[str],
        sort: str,
        skip: int,
        limit: int,
    ) -> Tuple[int, List[Media]]:
        event = await self._viewable_event(parse_id(event_id, "Event"), user)
        media_type = None
        if media_filter == "images":
            media_type = MediaTypeEnum.image
        elif media_filter == "videos":
            media_type = MediaTypeEnum.video
        return await media_repo.list_event_media(
            self.session, event.id, media_type=media_type, sort=sort, limit=limit, offset=skip
        )

    async def get_media_detail(self, media_id: str, user: Optional[User]) -> dict:
        media = await self.get_media_or_404(media_id)
        await self._viewable_event(media.event_id, user)
        detail = MediaOut.model_validate(media).model_dump()
        detail["liked_by"] = await media_repo.liked_by(self.session, media.id)
        detail["liked_by_me"] = user is not None and user.id in detail["liked_by"]
        return detail

    async def update_media(self, media_id: str, payload: MediaUpdate, user: User) -> Media:
        media = await self.get_media_or_404(media_id)
        if media.uploaded_by != user.id:
            raise ForbiddenError("Only the uploader can edit this media")
        updates = payload.model_dump(exclude_unset=True)
        if "tags" in updates:
            updates["tags"] = parse_tags(",".join(updates["tags"] or []))
        if not updates:
            return media
        return await media_repo.update_media(self.session, media, **updates)

    async def delete_media(self, media_id: str, user: User) -> None:
        media = await self.get_media_or_404(media_id)
        media_uuid, storage_id, uploader_id = media.id, media.storage_id, media.uploaded_by
        if uploader_id != user.id:
            event = await event_repo.get_event(self.session, media.event_id)
            if not event or not access_control.is_creator(event, user):
                raise ForbiddenError("Only the uploader or the event creator can delete this media")

        try:
            await media_repo.delete_media(self.session, media_uuid)
        except SQLAlchemyError as e:
            logger.error(f"Deleting media {media_uuid} failed: {e}")
            raise UnavailableError("Could not delete media, please try again")
        await storage.media_storage.delete(storage_id)
        await invalidate_user_stats(uploader_id)
        logger.info(f"User {user.id} deleted media {media_uuid}")

    async def toggle_like(self, media_id: str, user: User) -> dict:
        """
        Like the media if the caller has not, otherwise remove the like.

        The liked-by row and the counter change in one transaction with the
        media row locked, so ``likes`` always equals the liked-by set size.
        """
        media = await self.get_media_or_404(media_id)
        event = await self._viewable_event(media.event_id, user)
        media_uuid, user_id = media.id, user.id
        uploader_id, event_id, event_name = media.uploaded_by, event.id, event.name

        try:
            if await media_repo.lock_media(self.session, media_uuid) is None:
                await self.session.rollback()
                raise NotFoundError(f"Media not found with id of {media_id}")
            if await media_repo.remove_like(self.session, media_uuid, user_id):
                await media_repo.adjust_like_count(self.session, media_uuid, -1)
                liked = False
            else:
                await media_repo.add_like(self.session, media_uuid, user_id)
                await media_repo.adjust_like_count(self.session, media_uuid, 1)
                liked = True
            await self.session.commit()
        except IntegrityError:
            # a concurrent toggle by the same user already inserted the like
            await self.session.rollback()
            raise ConflictError("Like state changed concurrently, please retry")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Toggling like on media {media_uuid} failed: {e}")
            raise UnavailableError("Could not update like, please try again")

        await self.session.refresh(media)
        if liked:
            await publisher.publish_event(
                publisher.MEDIA_LIKED,
                {
                    "media_id": str(media_uuid),
                    "event_id": str(event_id),
                    "event_name": event_name,
                    "user_id": str(user_id),
                    "user_name": user.name,
                    "recipient_id": str(uploader_id),
                },
            )
        return {"media_id": media_uuid, "liked": liked, "likes": media.likes}
