"""Push token registry persistence."""
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List, Iterable
from datetime import datetime
import uuid
from eventshare.core.security import utcnow
from eventshare.db.models import PushToken


async def get_by_token(db: AsyncSession, token: str) -> Optional[PushToken]:
    res = await db.execute(select(PushToken).where(PushToken.token == token))
    return res.scalars().first()


async def upsert_token(db: AsyncSession, token: str, user_id: Optional[uuid.UUID], **fields) -> PushToken:
    """
    Register a device token, or re-activate and re-own an existing one.
    """
    existing = await get_by_token(db, token)
    if existing is None:
        existing = PushToken(token=token, user_id=user_id, **fields)
        db.add(existing)
    else:
        existing.user_id = user_id
        existing.is_active = True
        existing.last_used = utcnow()
        for key, value in fields.items():
            setattr(existing, key, value)
    await db.commit()
    await db.refresh(existing)
    return existing


async def list_user_tokens(db: AsyncSession, user_id: uuid.UUID, active_only: bool = False) -> List[PushToken]:
    conditions = [PushToken.user_id == user_id]
    if active_only:
        conditions.append(PushToken.is_active.is_(True))
    res = await db.execute(select(PushToken).where(*conditions).order_by(PushToken.last_used.desc()))
    return res.scalars().all()


async def active_tokens_for_users(db: AsyncSession, user_ids: Iterable[uuid.UUID]) -> List[PushToken]:
    ids = list(user_ids)
    if not ids:
        return []
    res = await db.execute(
        select(PushToken).where(PushToken.user_id.in_(ids), PushToken.is_active.is_(True))
    )
    return res.scalars().all()


async def deactivate_tokens(db: AsyncSession, tokens: Iterable[str], user_id: Optional[uuid.UUID] = None) -> int:
    values = list(tokens)
    if not values:
        return 0
    conditions = [PushToken.token.in_(values)]
    if user_id is not None:
        conditions.append(PushToken.user_id == user_id)
    res = await db.execute(
        update(PushToken)
        .where(*conditions)
        .values(is_active=False, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return res.rowcount


async def touch_tokens(db: AsyncSession, tokens: Iterable[str]) -> None:
    values = list(tokens)
    if not values:
        return
    await db.execute(
        update(PushToken)
        .where(PushToken.token.in_(values))
        .values(last_used=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()


async def token_stats(db: AsyncSession) -> dict:
    total = (await db.execute(select(func.count(PushToken.id)))).scalar() or 0
    active = (await db.execute(
        select(func.count(PushToken.id)).where(PushToken.is_active.is_(True))
    )).scalar() or 0
    rows = (await db.execute(
        select(PushToken.platform, func.count(PushToken.id))
        .where(PushToken.is_active.is_(True))
        .group_by(PushToken.platform)
    )).all()
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "by_platform": {(p.value if hasattr(p, "value") else p): n for p, n in rows},
    }


async def delete_inactive_before(db: AsyncSession, cutoff: datetime) -> int:
    res = await db.execute(
        delete(PushToken).where(PushToken.is_active.is_(False), PushToken.updated_at < cutoff)
    )
    await db.commit()
    return res.rowcount


async def deactivate_unused_before(db: AsyncSession, cutoff: datetime) -> int:
    res = await db.execute(
        update(PushToken)
        .where(PushToken.is_active.is_(True), PushToken.last_used < cutoff)
        .values(is_active=False, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return res.rowcount
