from sqlalchemy import Column, DateTime, ForeignKey, Enum, Index, UniqueConstraint, Uuid
import uuid
from eventshare.core.security import utcnow
from eventshare.db.session import Base
import enum


class ParticipantRoleEnum(str, enum.Enum):
    creator = "creator"
    participant = "participant"


class EventParticipant(Base):
    __tablename__ = "event_participants"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    role = Column(Enum(ParticipantRoleEnum), default=ParticipantRoleEnum.participant, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # One membership per (event, user); concurrent joins lose on this constraint
    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_event_participant'),
        Index('idx_participant_user', 'user_id'),
        Index('idx_participant_event', 'event_id'),
    )
