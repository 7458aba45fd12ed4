"""Feedback persistence."""
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime
import uuid
from eventshare.db.models import Feedback, FeedbackStatusEnum, FeedbackTypeEnum
from eventshare.db.retry import retry_read


async def create_feedback(db: AsyncSession, **fields) -> Feedback:
    feedback = Feedback(**fields)
    db.add(feedback)
    await db.commit()
    await db.refresh(feedback)
    return feedback


@retry_read
async def get_feedback(db: AsyncSession, feedback_id: uuid.UUID) -> Optional[Feedback]:
    res = await db.execute(select(Feedback).where(Feedback.id == feedback_id))
    return res.scalars().first()


@retry_read
async def list_feedback(
    db: AsyncSession,
    status: Optional[FeedbackStatusEnum] = None,
    feedback_type: Optional[FeedbackTypeEnum] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple:
    conditions = []
    if status is not None:
        conditions.append(Feedback.status == status)
    if feedback_type is not None:
        conditions.append(Feedback.type == feedback_type)
    total = (await db.execute(select(func.count(Feedback.id)).where(*conditions))).scalar() or 0
    res = await db.execute(
        select(Feedback).where(*conditions).order_by(Feedback.created_at.desc()).limit(limit).offset(offset)
    )
    return total, res.scalars().all()


async def feedback_stats(db: AsyncSession) -> dict:
    total = (await db.execute(select(func.count(Feedback.id)))).scalar() or 0
    by_type = (await db.execute(
        select(Feedback.type, func.count(Feedback.id)).group_by(Feedback.type)
    )).all()
    by_status = (await db.execute(
        select(Feedback.status, func.count(Feedback.id)).group_by(Feedback.status)
    )).all()

    def _as_dict(rows):
        return {(k.value if hasattr(k, "value") else k): n for k, n in rows}

    return {"total": total, "by_type": _as_dict(by_type), "by_status": _as_dict(by_status)}


async def update_feedback(db: AsyncSession, feedback: Feedback, **fields) -> Feedback:
    for key, value in fields.items():
        setattr(feedback, key, value)
    await db.commit()
    await db.refresh(feedback)
    return feedback


async def delete_closed_before(db: AsyncSession, cutoff: datetime) -> int:
    res = await db.execute(
        delete(Feedback).where(
            Feedback.status == FeedbackStatusEnum.closed,
            Feedback.created_at < cutoff,
        )
    )
    await db.commit()
    return res.rowcount
