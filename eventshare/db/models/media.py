from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index, UniqueConstraint, JSON, Uuid
import uuid
from eventshare.core.security import utcnow
from eventshare.db.session import Base
import enum


class MediaTypeEnum(str, enum.Enum):
    image = "image"
    video = "video"


class Media(Base):
    __tablename__ = "media"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    uploaded_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    type = Column(Enum(MediaTypeEnum), nullable=False)
    filename = Column(String(255), nullable=False)
    storage_id = Column(String(512), nullable=False)
    url = Column(String(1024), nullable=False)
    caption = Column(String(500), nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    likes = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_media_event_created', 'event_id', 'created_at'),
        Index('idx_media_uploader', 'uploaded_by'),
    )


class MediaLike(Base):
    """Membership of a user in a media item's liked-by set."""
    __tablename__ = "media_likes"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    media_id = Column(Uuid, ForeignKey("media.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('media_id', 'user_id', name='uq_media_like'),
        Index('idx_media_like_media', 'media_id'),
    )
