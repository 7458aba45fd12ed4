"""User persistence."""
from sqlalchemy import select, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Iterable, Dict
import uuid
from eventshare.cache.cache_decorators import cached
from eventshare.core.exceptions import ConflictError
from eventshare.db.models import User, Media, Event
from eventshare.db.retry import retry_read


async def create_user(db: AsyncSession, **fields) -> User:
    """
    Insert a user. A duplicate email surfaces as ``ConflictError``.
    """
    user = User(**fields)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email already registered")
    await db.refresh(user)
    return user


@retry_read
async def get_user(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    res = await db.execute(select(User).where(User.id == user_id))
    return res.scalars().first()


@retry_read
async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == email.strip().lower()))
    return res.scalars().first()


async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, User]:
    ids = list({uid for uid in user_ids if uid is not None})
    if not ids:
        return {}
    res = await db.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user for user in res.scalars().all()}


async def update_user(db: AsyncSession, user: User, **fields) -> User:
    for key, value in fields.items():
        setattr(user, key, value)
    await db.commit()
    await db.refresh(user)
    return user


async def search_users(
    db: AsyncSession,
    search: Optional[str],
    exclude_ids: Iterable[uuid.UUID],
    limit: int,
    offset: int,
) -> tuple:
    """
    Case-insensitive name/email search, returning ``(total, users)``.
    """
    conditions = []
    excluded = list(exclude_ids)
    if excluded:
        conditions.append(User.id.notin_(excluded))
    if search:
        pattern = f"%{search.strip().lower()}%"
        conditions.append(or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)))

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
    res = await db.execute(
        select(User).where(*conditions).order_by(User.name.asc()).limit(limit).offset(offset)
    )
    return total, res.scalars().all()


@cached("users:stats", expire=60)
async def get_user_stats(db: AsyncSession, user_id: uuid.UUID) -> dict:
    uploads = (await db.execute(
        select(func.count(Media.id)).where(Media.uploaded_by == user_id)
    )).scalar() or 0
    events_created = (await db.execute(
        select(func.count(Event.id)).where(Event.created_by == user_id)
    )).scalar() or 0
    return {"user_id": str(user_id), "uploads": uploads, "events_created": events_created}
