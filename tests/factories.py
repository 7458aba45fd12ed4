"""Row builders shared by the unit and integration suites."""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.core.security import create_access_token, hash_password
from eventshare.db.models import Event, EventParticipant, Media, MediaTypeEnum, ParticipantRoleEnum, User

TEST_PASSWORD = "Test123!@#"


async def create_user(db_session: AsyncSession, name: str, email: str, verified: bool = True) -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(TEST_PASSWORD),
        is_email_verified=verified,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


async def create_event(
    db_session: AsyncSession,
    creator: User,
    name: str = "Birthday Party",
    is_private: bool = True,
    share_token: Optional[str] = None,
) -> Event:
    """Event plus its creator participation row, as the service creates them."""
    event = Event(
        name=name,
        date="2026-12-01",
        time="18:00",
        location="Nairobi",
        description=f"{name} description",
        is_private=is_private,
        created_by=creator.id,
        participant_count=1,
        share_token=share_token,
    )
    db_session.add(event)
    await db_session.flush()
    db_session.add(EventParticipant(event_id=event.id, user_id=creator.id, role=ParticipantRoleEnum.creator))
    await db_session.commit()
    await db_session.refresh(event)
    return event


async def add_participant(db_session: AsyncSession, event: Event, user: User) -> None:
    db_session.add(EventParticipant(event_id=event.id, user_id=user.id, role=ParticipantRoleEnum.participant))
    event.participant_count = event.participant_count + 1
    await db_session.commit()
    await db_session.refresh(event)


async def create_media(db_session: AsyncSession, event: Event, uploader: User, likes: int = 0) -> Media:
    media = Media(
        event_id=event.id,
        uploaded_by=uploader.id,
        type=MediaTypeEnum.image,
        filename="photo.jpg",
        storage_id=f"events/{event.id}/photo.jpg",
        url=f"http://test/media-files/events/{event.id}/photo.jpg",
        tags=[],
        likes=likes,
    )
    db_session.add(media)
    await db_session.commit()
    await db_session.refresh(media)
    return media


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}
