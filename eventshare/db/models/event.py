from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Index, Uuid
import uuid
from eventshare.core.security import utcnow
from eventshare.db.session import Base


class Event(Base):
    __tablename__ = "events"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    date = Column(String(50), nullable=False)
    time = Column(String(50), nullable=True)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    is_private = Column(Boolean, default=True, nullable=False)
    cover_image = Column(String(1024), nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    participant_count = Column(Integer, default=1, nullable=False)
    share_token = Column(String(64), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_event_creator', 'created_by'),
        Index('idx_event_created_at', 'created_at'),
        Index('idx_event_privacy', 'is_private'),
    )
