from typing import Optional, List, Tuple
from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.cache import redis_client
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
from eventshare.core.share_links import (
    build_share_link,
    generate_share_token,
    qr_code_data_url,
    token_matches,
)
from eventshare.db.models import Event, User
from eventshare.db.repositories import events as event_repo, users as user_repo
from eventshare.events import publisher
from eventshare.schemas import EventCreate, EventUpdate, EventOut, PublicUserOut
from eventshare.services import access_control, storage


def event_fields(event: Event) -> dict:
    return EventOut.model_validate(event).model_dump()


class EventService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_event_or_404(self, event_id) -> Event:
        uid = parse_id(event_id, "Event")
        event = await event_repo.get_event(self.session, uid)
        if not event:
            raise NotFoundError(f"Event not found with id of {event_id}")
        return event

    async def _is_participant(self, event: Event, user: Optional[User]) -> bool:
        return await event_repo.is_participant(self.session, event.id, user.id if user else None)

    async def _creator_out(self, event: Event) -> Optional[dict]:
        creator = await user_repo.get_user(self.session, event.created_by)
        return PublicUserOut.model_validate(creator).model_dump() if creator else None

    async def create_event(self, payload: EventCreate, user: User) -> Event:
        event = await event_repo.create_event_with_creator(
            self.session,
            user.id,
            share_token=generate_share_token(),
            **payload.model_dump(),
        )
        await invalidate_user_stats(user.id)
        logger.info(f"User {user.id} created event {event.id} (private={event.is_private})")
        return event

    async def list_events(self, user: Optional[User], skip: int, limit: int) -> Tuple[int, List[Event]]:
        return await event_repo.list_visible_events(
            self.session, user.id if user else None, limit=limit, offset=skip
        )

    async def list_user_events(
        self, user_id: str, viewer: User, event_filter: str, skip: int, limit: int
    ) -> Tuple[int, List[Event]]:
        uid = parse_id(user_id, "User")
        if not await user_repo.get_user(self.session, uid):
            raise NotFoundError(f"User not found with id of {user_id}")
        return await event_repo.list_user_events(
            self.session, uid, event_filter, limit=limit, offset=skip, viewer_id=viewer.id
        )

    async def get_event_detail(self, event_id: str, user: Optional[User]) -> dict:
        """
        Event with creator, participants and membership flags.

        Only members receive the share link and its QR code.
        """
        event = await self.get_event_or_404(event_id)
        is_participant = await self._is_participant(event, user)
        access_control.ensure_can_view(event, user, is_participant)

        detail = event_fields(event)
        detail["creator"] = await self._creator_out(event)
        detail["participants"] = await event_repo.list_participants_with_details(self.session, event.id)
        detail["is_participant"] = is_participant
        detail["is_creator"] = access_control.is_creator(event, user)
        if (is_participant or detail["is_creator"]) and event.share_token:
            link = build_share_link(event.id, event.share_token)
            detail["share_link"] = link
            detail["qr_code"] = qr_code_data_url(link)
        return detail

    async def update_event(self, event_id: str, payload: EventUpdate, user: User) -> Event:
        event = await self.get_event_or_404(event_id)
        access_control.ensure_can_modify(event, user)

        updates = payload.model_dump(exclude_unset=True)
        for field in ("name", "date"):
            if field in updates:
                value = (updates[field] or "").strip()
                if not value:
                    raise ValidationFailedError(f"Event {field} must not be blank")
                updates[field] = value
        if "is_private" in updates and updates["is_private"] is None:
            updates.pop("is_private")

        # Going private invalidates any share link already handed out
        if updates.get("is_private") is True and not event.is_private:
            updates["share_token"] = None
            logger.info(f"Event {event.id} made private, share token cleared")

        if not updates:
            return event
        return await event_repo.update_event(self.session, event, **updates)

    async def delete_event(self, event_id: str, user: User) -> None:
        event = await self.get_event_or_404(event_id)
        access_control.ensure_can_modify(event, user)
        event_uuid, user_id = event.id, user.id

        try:
            storage_ids = await event_repo.delete_event_cascade(self.session, event_uuid)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete event {event_uuid}: {e}")
            raise UnavailableError("Could not delete event, please try again")

        for storage_id in storage_ids:
            await storage.media_storage.delete(storage_id)
        await redis_client.cache.delete_pattern("users:stats:*")
        logger.info(f"User {user_id} deleted event {event_uuid} ({len(storage_ids)} media items)")

    async def _join(self, event: Event, user: User) -> Event:
        """Insert the participation row and bump the counter in one transaction."""
        event_id, user_id = event.id, user.id
        try:
            await event_repo.add_participant(self.session, event_id, user_id)
            await event_repo.adjust_participant_count(self.session, event_id, 1)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Already a participant of this event")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Join of event {event_id} by user {user_id} failed: {e}")
            raise UnavailableError("Could not join event, please try again")

        await self.session.refresh(event)
        logger.info(f"User {user.id} joined event {event.id}")
        await publisher.publish_event(
            publisher.EVENT_JOINED,
            {
                "event_id": str(event.id),
                "event_name": event.name,
                "user_id": str(user.id),
                "user_name": user.name,
                "recipient_id": str(event.created_by),
            },
        )
        return event

    async def join_event(self, event_id: str, user: User) -> Event:
        event = await self.get_event_or_404(event_id)
        is_participant = await self._is_participant(event, user)
        access_control.ensure_can_join(event, user, is_participant, via_share_token=False)
        return await self._join(event, user)

    async def _event_by_share_token(self, event_id: str, token: str) -> Event:
        uid = parse_id(event_id, "Event")
        event = await event_repo.get_event_by_share_token(self.session, uid, token)
        if not event or not token_matches(event.share_token, token):
            raise NotFoundError("Invalid or expired share link")
        return event

    async def join_via_share_link(self, event_id: str, token: str, user: User) -> Event:
        event = await self._event_by_share_token(event_id, token)
        is_participant = await self._is_participant(event, user)
        access_control.ensure_can_join(event, user, is_participant, via_share_token=True)
        return await self._join(event, user)

    async def leave_event(self, event_id: str, user: User) -> Event:
        event = await self.get_event_or_404(event_id)
        if access_control.is_creator(event, user):
            raise ForbiddenError("The creator cannot leave their own event")
        event_id, user_id = event.id, user.id

        try:
            removed = await event_repo.remove_participant(self.session, event_id, user_id)
            if not removed:
                await self.session.rollback()
                raise ConflictError("Not a participant of this event")
            await event_repo.adjust_participant_count(self.session, event_id, -1)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Leave of event {event_id} by user {user_id} failed: {e}")
            raise UnavailableError("Could not leave event, please try again")

        await self.session.refresh(event)
        logger.info(f"User {user.id} left event {event.id}")
        return event

    async def share_event(self, event_id: str, user: Optional[User]) -> dict:
        """Issue a fresh share token, replacing any previous one."""
        event = await self.get_event_or_404(event_id)
        is_participant = await self._is_participant(event, user)
        access_control.ensure_can_share(event, user, is_participant)

        event = await event_repo.set_share_token(self.session, event, generate_share_token())
        link = build_share_link(event.id, event.share_token)
        logger.info(f"User {user.id} generated a share link for event {event.id}")
        return {
            "event_id": event.id,
            "share_token": event.share_token,
            "share_link": link,
            "qr_code": qr_code_data_url(link),
        }

    async def get_shared_event(self, event_id: str, token: str, user: Optional[User]) -> dict:
        """
        Resolve a share link regardless of privacy. Participant details are
        only included for authenticated callers.
        """
        event = await self._event_by_share_token(event_id, token)
        is_participant = await self._is_participant(event, user)

        shared = event_fields(event)
        shared["creator"] = await self._creator_out(event)
        shared["participants"] = (
            await event_repo.list_participants_with_details(self.session, event.id) if user else []
        )
        shared["is_participant"] = is_participant
        shared["can_join"] = access_control.can_join(event, user, is_participant, via_share_token=True)
        return shared

    async def upload_cover_image(self, file: UploadFile, user: User) -> dict:
        if not (file.content_type or "").startswith("image/"):
            raise ValidationFailedError("Cover image must be an image")
        data = await storage.read_upload(file, settings.MAX_IMAGE_UPLOAD_MB * 1024 * 1024)
        try:
            stored = await storage.media_storage.store(data, f"covers/{user.id}", file.filename, file.content_type)
        except storage.StorageError:
            raise UnavailableError("Could not store cover image")
        return {"url": stored.url, "storage_id": stored.id}
