"""Media items and the liked-by set."""
from sqlalchemy import select, update, delete, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
import uuid
from eventshare.db.models import Media, MediaLike, MediaTypeEnum
from eventshare.db.retry import retry_read


async def create_media_items(db: AsyncSession, items: List[dict]) -> List[Media]:
    media = [Media(**item) for item in items]
    db.add_all(media)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    for m in media:
        await db.refresh(m)
    return media


@retry_read
async def get_media(db: AsyncSession, media_id: uuid.UUID) -> Optional[Media]:
    res = await db.execute(select(Media).where(Media.id == media_id))
    return res.scalars().first()


async def lock_media(db: AsyncSession, media_id: uuid.UUID) -> Optional[Media]:
    """``SELECT ... FOR UPDATE`` on the media row (a no-op on SQLite)."""
    res = await db.execute(select(Media).where(Media.id == media_id).with_for_update())
    return res.scalars().first()


@retry_read
async def list_event_media(
    db: AsyncSession,
    event_id: uuid.UUID,
    media_type: Optional[MediaTypeEnum] = None,
    sort: str = "newest",
    limit: int = 50,
    offset: int = 0,
) -> tuple:
    conditions = [Media.event_id == event_id]
    if media_type is not None:
        conditions.append(Media.type == media_type)

    if sort == "oldest":
        order = [Media.created_at.asc()]
    elif sort == "popular":
        order = [Media.likes.desc(), Media.created_at.desc()]
    else:
        order = [Media.created_at.desc()]

    total = (await db.execute(select(func.count(Media.id)).where(*conditions))).scalar() or 0
    res = await db.execute(select(Media).where(*conditions).order_by(*order).limit(limit).offset(offset))
    return total, res.scalars().all()


async def update_media(db: AsyncSession, media: Media, **fields) -> Media:
    for key, value in fields.items():
        setattr(media, key, value)
    await db.commit()
    await db.refresh(media)
    return media


async def delete_media(db: AsyncSession, media_id: uuid.UUID) -> None:
    try:
        await db.execute(delete(MediaLike).where(MediaLike.media_id == media_id))
        await db.execute(delete(Media).where(Media.id == media_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def remove_like(db: AsyncSession, media_id: uuid.UUID, user_id: uuid.UUID) -> int:
    res = await db.execute(
        delete(MediaLike).where(MediaLike.media_id == media_id, MediaLike.user_id == user_id)
    )
    return res.rowcount


async def add_like(db: AsyncSession, media_id: uuid.UUID, user_id: uuid.UUID) -> None:
    db.add(MediaLike(media_id=media_id, user_id=user_id))
    await db.flush()


async def adjust_like_count(db: AsyncSession, media_id: uuid.UUID, delta: int) -> None:
    await db.execute(
        update(Media)
        .where(Media.id == media_id)
        .values(likes=case((Media.likes + delta < 0, 0), else_=Media.likes + delta))
        .execution_options(synchronize_session=False)
    )


async def liked_by(db: AsyncSession, media_id: uuid.UUID) -> List[uuid.UUID]:
    res = await db.execute(
        select(MediaLike.user_id).where(MediaLike.media_id == media_id).order_by(MediaLike.created_at.asc())
    )
    return list(res.scalars().all())


async def reconcile_media_likes(db: AsyncSession) -> List[uuid.UUID]:
    """Reset drifted like counters to the size of their liked-by set."""
    actual = (
        select(func.count(MediaLike.id))
        .where(MediaLike.media_id == Media.id)
        .correlate(Media)
        .scalar_subquery()
    )
    drifted = list((await db.execute(select(Media.id).where(Media.likes != actual))).scalars().all())
    if drifted:
        await db.execute(
            update(Media)
            .where(Media.id.in_(drifted))
            .values(likes=actual)
            .execution_options(synchronize_session=False)
        )
    await db.commit()
    return drifted
