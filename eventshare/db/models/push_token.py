from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Enum, Index, Uuid
import uuid
from eventshare.core.security import utcnow
from eventshare.db.session import Base
import enum


class PlatformEnum(str, enum.Enum):
    ios = "ios"
    android = "android"
    web = "web"


class PushTokenTypeEnum(str, enum.Enum):
    expo = "expo"
    fcm = "fcm"
    apns = "apns"


class PushToken(Base):
    __tablename__ = "push_tokens"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    token = Column(String(512), unique=True, nullable=False)
    platform = Column(Enum(PlatformEnum), nullable=False)
    token_type = Column(Enum(PushTokenTypeEnum), default=PushTokenTypeEnum.expo, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_used = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    device_id = Column(String(255), nullable=True)
    device_name = Column(String(255), nullable=True)
    os_version = Column(String(50), nullable=True)
    app_version = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_push_token_user_active', 'user_id', 'is_active'),
        Index('idx_push_token_last_used', 'last_used'),
    )
