"""Invitation persistence and status compare-and-set."""
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List, Dict
from datetime import datetime
import uuid
from eventshare.db.models import Invitation, InvitationStatusEnum, ACTIVE_INVITATION_STATUSES
from eventshare.core.security import utcnow
from eventshare.db.retry import retry_read


async def create_invitation(db: AsyncSession, **fields) -> Invitation:
    invitation = Invitation(status=InvitationStatusEnum.pending, **fields)
    db.add(invitation)
    await db.commit()
    await db.refresh(invitation)
    return invitation


@retry_read
async def get_invitation(db: AsyncSession, invitation_id: uuid.UUID) -> Optional[Invitation]:
    res = await db.execute(select(Invitation).where(Invitation.id == invitation_id))
    return res.scalars().first()


async def find_active_invitation(db: AsyncSession, event_id: uuid.UUID, invitee_id: uuid.UUID) -> Optional[Invitation]:
    """Pending or accepted invitation for (event, invitee), if any."""
    res = await db.execute(
        select(Invitation).where(
            Invitation.event_id == event_id,
            Invitation.invitee_id == invitee_id,
            Invitation.status.in_(ACTIVE_INVITATION_STATUSES),
        )
    )
    return res.scalars().first()


async def transition_status(
    db: AsyncSession,
    invitation_id: uuid.UUID,
    from_status: InvitationStatusEnum,
    to_status: InvitationStatusEnum,
    responded_at: Optional[datetime] = None,
) -> bool:
    """
    Conditional ``UPDATE ... WHERE status = from_status``.

    Does not commit. Returns False when another request changed the status
    first.
    """
    values = {"status": to_status, "updated_at": responded_at or utcnow()}
    if responded_at is not None:
        values["responded_at"] = responded_at
    res = await db.execute(
        update(Invitation)
        .where(Invitation.id == invitation_id, Invitation.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def delete_pending_invitation(db: AsyncSession, invitation_id: uuid.UUID) -> bool:
    res = await db.execute(
        delete(Invitation).where(
            Invitation.id == invitation_id,
            Invitation.status == InvitationStatusEnum.pending,
        )
    )
    await db.commit()
    return res.rowcount == 1


@retry_read
async def list_received(
    db: AsyncSession,
    invitee_id: uuid.UUID,
    status: Optional[InvitationStatusEnum] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple:
    conditions = [Invitation.invitee_id == invitee_id]
    if status is not None:
        conditions.append(Invitation.status == status)
    total = (await db.execute(select(func.count(Invitation.id)).where(*conditions))).scalar() or 0
    res = await db.execute(
        select(Invitation).where(*conditions).order_by(Invitation.created_at.desc()).limit(limit).offset(offset)
    )
    return total, res.scalars().all()


@retry_read
async def list_sent(
    db: AsyncSession,
    inviter_id: uuid.UUID,
    event_id: Optional[uuid.UUID] = None,
    status: Optional[InvitationStatusEnum] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple:
    conditions = [Invitation.inviter_id == inviter_id]
    if event_id is not None:
        conditions.append(Invitation.event_id == event_id)
    if status is not None:
        conditions.append(Invitation.status == status)
    total = (await db.execute(select(func.count(Invitation.id)).where(*conditions))).scalar() or 0
    res = await db.execute(
        select(Invitation).where(*conditions).order_by(Invitation.created_at.desc()).limit(limit).offset(offset)
    )
    return total, res.scalars().all()


async def count_by_status(db: AsyncSession, event_id: uuid.UUID) -> Dict[str, int]:
    rows = (await db.execute(
        select(Invitation.status, func.count(Invitation.id))
        .where(Invitation.event_id == event_id)
        .group_by(Invitation.status)
    )).all()
    return {
        (status.value if hasattr(status, "value") else status): count
        for status, count in rows
    }


async def active_invitee_ids(db: AsyncSession, event_id: uuid.UUID) -> List[uuid.UUID]:
    res = await db.execute(
        select(Invitation.invitee_id).where(
            Invitation.event_id == event_id,
            Invitation.status.in_(ACTIVE_INVITATION_STATUSES),
        )
    )
    return list(res.scalars().all())
