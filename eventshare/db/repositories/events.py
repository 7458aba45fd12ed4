"""Event and participation persistence."""
from sqlalchemy import select, update, delete, and_, or_, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
import uuid
from eventshare.db.models import Event, EventParticipant, ParticipantRoleEnum, User, Media, MediaLike, Invitation
from eventshare.db.retry import retry_read


async def create_event_with_creator(db: AsyncSession, creator_id: uuid.UUID, **fields) -> Event:
    """
    Insert an event together with its creator's participation row.
    Both rows are committed in one transaction.
    """
    event = Event(created_by=creator_id, participant_count=1, **fields)
    db.add(event)
    await db.flush()
    db.add(EventParticipant(event_id=event.id, user_id=creator_id, role=ParticipantRoleEnum.creator))
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(event)
    return event


@retry_read
async def get_event(db: AsyncSession, event_id: uuid.UUID) -> Optional[Event]:
    res = await db.execute(select(Event).where(Event.id == event_id))
    return res.scalars().first()


async def get_event_by_share_token(db: AsyncSession, event_id: uuid.UUID, token: str) -> Optional[Event]:
    """Exact lookup on the indexed token column, scoped to the event id."""
    res = await db.execute(
        select(Event).where(Event.id == event_id, Event.share_token == token)
    )
    return res.scalars().first()


def _member_event_ids(user_id: uuid.UUID):
    return select(EventParticipant.event_id).where(EventParticipant.user_id == user_id)


@retry_read
async def list_visible_events(
    db: AsyncSession,
    user_id: Optional[uuid.UUID],
    limit: int = 20,
    offset: int = 0,
) -> tuple:
    """
    Public events plus the caller's own and joined events, newest first.

    Returns:
        Tuple of (total_count, events)
    """
    if user_id is None:
        condition = Event.is_private.is_(False)
    else:
        condition = or_(
            Event.is_private.is_(False),
            Event.created_by == user_id,
            Event.id.in_(_member_event_ids(user_id)),
        )
    total = (await db.execute(select(func.count(Event.id)).where(condition))).scalar() or 0
    res = await db.execute(
        select(Event).where(condition).order_by(Event.created_at.desc()).limit(limit).offset(offset)
    )
    return total, res.scalars().all()


@retry_read
async def list_user_events(
    db: AsyncSession,
    user_id: uuid.UUID,
    event_filter: str = "all",
    limit: int = 20,
    offset: int = 0,
    viewer_id: Optional[uuid.UUID] = None,
) -> tuple:
    """
    Events a user created, joined as participant, or both (``all``).

    When ``viewer_id`` differs from ``user_id`` only events the viewer may
    see are returned.
    """
    if event_filter == "created":
        condition = Event.created_by == user_id
    elif event_filter == "joined":
        joined = select(EventParticipant.event_id).where(
            EventParticipant.user_id == user_id,
            EventParticipant.role == ParticipantRoleEnum.participant,
        )
        condition = Event.id.in_(joined)
    else:
        condition = or_(Event.created_by == user_id, Event.id.in_(_member_event_ids(user_id)))

    if viewer_id is not None and viewer_id != user_id:
        condition = and_(condition, or_(
            Event.is_private.is_(False),
            Event.created_by == viewer_id,
            Event.id.in_(_member_event_ids(viewer_id)),
        ))

    total = (await db.execute(select(func.count(Event.id)).where(condition))).scalar() or 0
    res = await db.execute(
        select(Event).where(condition).order_by(Event.created_at.desc()).limit(limit).offset(offset)
    )
    return total, res.scalars().all()


async def update_event(db: AsyncSession, event: Event, **fields) -> Event:
    for key, value in fields.items():
        setattr(event, key, value)
    await db.commit()
    await db.refresh(event)
    return event


async def set_share_token(db: AsyncSession, event: Event, token: Optional[str]) -> Event:
    event.share_token = token
    await db.commit()
    await db.refresh(event)
    return event


async def delete_event_cascade(db: AsyncSession, event_id: uuid.UUID) -> List[str]:
    """
    Delete an event with its participations and media, detaching invitations.

    Returns:
        Storage ids of the deleted media, for best-effort file cleanup
    """
    storage_ids = (await db.execute(
        select(Media.storage_id).where(Media.event_id == event_id)
    )).scalars().all()
    media_ids = select(Media.id).where(Media.event_id == event_id)
    try:
        await db.execute(delete(MediaLike).where(MediaLike.media_id.in_(media_ids)))
        await db.execute(delete(Media).where(Media.event_id == event_id))
        await db.execute(delete(EventParticipant).where(EventParticipant.event_id == event_id))
        await db.execute(
            update(Invitation)
            .where(Invitation.event_id == event_id)
            .values(event_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(delete(Event).where(Event.id == event_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return list(storage_ids)


# ---------------------------------------------------------------- participation

@retry_read
async def get_participation(db: AsyncSession, event_id: uuid.UUID, user_id: uuid.UUID) -> Optional[EventParticipant]:
    res = await db.execute(
        select(EventParticipant).where(
            EventParticipant.event_id == event_id,
            EventParticipant.user_id == user_id,
        )
    )
    return res.scalars().first()


async def is_participant(db: AsyncSession, event_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> bool:
    if user_id is None:
        return False
    return await get_participation(db, event_id, user_id) is not None


async def add_participant(
    db: AsyncSession,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    role: ParticipantRoleEnum = ParticipantRoleEnum.participant,
) -> EventParticipant:
    """
    Stage a participation row and flush it, leaving the transaction open.
    A concurrent duplicate raises ``IntegrityError`` from the flush.
    """
    participant = EventParticipant(event_id=event_id, user_id=user_id, role=role)
    db.add(participant)
    await db.flush()
    return participant


async def remove_participant(db: AsyncSession, event_id: uuid.UUID, user_id: uuid.UUID) -> int:
    res = await db.execute(
        delete(EventParticipant).where(
            EventParticipant.event_id == event_id,
            EventParticipant.user_id == user_id,
            EventParticipant.role == ParticipantRoleEnum.participant,
        )
    )
    return res.rowcount


async def adjust_participant_count(db: AsyncSession, event_id: uuid.UUID, delta: int) -> int:
    """Apply ``participant_count + delta`` in SQL, never going below zero."""
    new_value = case(
        (Event.participant_count + delta < 0, 0),
        else_=Event.participant_count + delta,
    )
    res = await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(participant_count=new_value)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount


async def count_participants(db: AsyncSession, event_id: uuid.UUID) -> int:
    res = await db.execute(
        select(func.count(EventParticipant.id)).where(EventParticipant.event_id == event_id)
    )
    return res.scalar() or 0


async def participant_user_ids(db: AsyncSession, event_id: uuid.UUID) -> List[uuid.UUID]:
    res = await db.execute(select(EventParticipant.user_id).where(EventParticipant.event_id == event_id))
    return list(res.scalars().all())


@retry_read
async def list_participants_with_details(db: AsyncSession, event_id: uuid.UUID) -> List[dict]:
    """
    Participants joined with their profile and per-event upload count,
    creator first then by join time.
    """
    uploads = (
        select(Media.uploaded_by.label("user_id"), func.count(Media.id).label("upload_count"))
        .where(Media.event_id == event_id)
        .group_by(Media.uploaded_by)
        .subquery()
    )
    q = (
        select(
            EventParticipant.user_id,
            EventParticipant.role,
            EventParticipant.joined_at,
            User.name,
            User.profile_image,
            func.coalesce(uploads.c.upload_count, 0),
        )
        .join(User, User.id == EventParticipant.user_id)
        .outerjoin(uploads, uploads.c.user_id == EventParticipant.user_id)
        .where(EventParticipant.event_id == event_id)
        .order_by(EventParticipant.joined_at.asc())
    )
    rows = (await db.execute(q)).all()
    participants = [
        {
            "user_id": user_id,
            "name": name,
            "profile_image": profile_image,
            "role": role.value if hasattr(role, "value") else role,
            "joined_at": joined_at,
            "upload_count": upload_count,
        }
        for user_id, role, joined_at, name, profile_image, upload_count in rows
    ]
    participants.sort(key=lambda p: p["role"] != ParticipantRoleEnum.creator.value)
    return participants


async def reconcile_participant_counts(db: AsyncSession) -> List[uuid.UUID]:
    """
    Reset every drifted ``participant_count`` to the participation row count.

    Returns:
        Ids of the events that were corrected
    """
    actual = (
        select(func.count(EventParticipant.id))
        .where(EventParticipant.event_id == Event.id)
        .correlate(Event)
        .scalar_subquery()
    )
    drifted = list((await db.execute(
        select(Event.id).where(Event.participant_count != actual)
    )).scalars().all())
    if drifted:
        # Recomputed in the UPDATE itself so a concurrent join is not overwritten
        await db.execute(
            update(Event)
            .where(Event.id.in_(drifted))
            .values(participant_count=actual)
            .execution_options(synchronize_session=False)
        )
    await db.commit()
    return drifted
