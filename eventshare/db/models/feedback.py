from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum, Index, Uuid
import uuid
from eventshare.core.security import utcnow
from eventshare.db.session import Base
import enum


class FeedbackTypeEnum(str, enum.Enum):
    bug = "bug"
    feature = "feature"
    general = "general"


class FeedbackStatusEnum(str, enum.Enum):
    new = "new"
    reviewing = "reviewing"
    resolved = "resolved"
    closed = "closed"


class Feedback(Base):
    __tablename__ = "feedback"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message = Column(String(2000), nullable=False)
    type = Column(Enum(FeedbackTypeEnum), default=FeedbackTypeEnum.general, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    email = Column(String(255), nullable=True)
    platform = Column(String(50), nullable=True)
    app_version = Column(String(50), nullable=True)
    status = Column(Enum(FeedbackStatusEnum), default=FeedbackStatusEnum.new, nullable=False)
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_feedback_status', 'status'),
        Index('idx_feedback_type', 'type'),
        Index('idx_feedback_created_at', 'created_at'),
    )
