from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Index, Uuid
import uuid
from eventshare.core.security import utcnow
from eventshare.db.session import Base
import enum


class InvitationStatusEnum(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


ACTIVE_INVITATION_STATUSES = (InvitationStatusEnum.pending, InvitationStatusEnum.accepted)


class Invitation(Base):
    __tablename__ = "invitations"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Nulled when the event is deleted so the invitation history survives
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    inviter_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    invitee_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    message = Column(String(500), nullable=True)
    status = Column(Enum(InvitationStatusEnum), default=InvitationStatusEnum.pending, nullable=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_invitation_event_invitee', 'event_id', 'invitee_id'),
        Index('idx_invitation_invitee_status', 'invitee_id', 'status'),
        Index('idx_invitation_inviter', 'inviter_id'),
    )
