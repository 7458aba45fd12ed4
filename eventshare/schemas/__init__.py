from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Generic, TypeVar, Dict, Any
from uuid import UUID
from datetime import datetime
from enum import Enum

T = TypeVar("T")


class PaginationMetadata(BaseModel):
    total: int
    page: int
    per_page: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, total: int, page: int, per_page: int) -> "PaginationMetadata":
        total_pages = (total + per_page - 1) // per_page
        return cls(
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    pagination: PaginationMetadata


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------- auth / users

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenResponse(BaseModel):
    """Access and refresh token pair."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class LoginRequest(BaseModel):
    """Schema for user login request."""
    email: EmailStr
    password: str


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class UserOut(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    profile_image: Optional[str] = None
    is_email_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PublicUserOut(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    profile_image: Optional[str] = None

    class Config:
        from_attributes = True


class AuthResponse(TokenResponse):
    user: UserOut


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    profile_image: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class UserStats(BaseModel):
    user_id: UUID
    uploads: int
    events_created: int


# ---------------------------------------------------------------- events

class EventFilter(str, Enum):
    all = "all"
    created = "created"
    joined = "joined"


class EventCreate(BaseModel):
    name: str = Field(..., max_length=100)
    date: str = Field(..., max_length=50)
    time: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    is_private: bool = True
    cover_image: Optional[str] = None

    @field_validator("name", "date")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class EventUpdate(BaseModel):
    """Partial update; blank name/date are rejected by the service with a 400."""
    name: Optional[str] = Field(None, max_length=100)
    date: Optional[str] = Field(None, max_length=50)
    time: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    is_private: Optional[bool] = None
    cover_image: Optional[str] = None


class EventOut(BaseModel):
    id: UUID
    name: str
    date: str
    time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    is_private: bool
    cover_image: Optional[str] = None
    created_by: UUID
    participant_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class ParticipantOut(BaseModel):
    user_id: UUID
    name: str
    profile_image: Optional[str] = None
    role: str
    joined_at: datetime
    upload_count: int = 0


class EventDetailOut(EventOut):
    creator: Optional[PublicUserOut] = None
    participants: List[ParticipantOut] = []
    is_participant: bool = False
    is_creator: bool = False
    share_link: Optional[str] = None
    qr_code: Optional[str] = None


class ShareLinkOut(BaseModel):
    event_id: UUID
    share_token: str
    share_link: str
    qr_code: str


class SharedEventOut(EventOut):
    creator: Optional[PublicUserOut] = None
    participants: List[ParticipantOut] = []
    is_participant: bool = False
    can_join: bool = False


class MembershipOut(BaseModel):
    event_id: UUID
    participant_count: int
    message: str


class UploadedImageOut(BaseModel):
    url: str
    storage_id: str


# ---------------------------------------------------------------- invitations

class InvitationStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


class InvitationCreate(BaseModel):
    event_id: UUID
    invitee_id: UUID
    message: Optional[str] = Field(None, max_length=500)


class InvitationOut(BaseModel):
    id: UUID
    event_id: Optional[UUID] = None
    inviter_id: UUID
    invitee_id: UUID
    message: Optional[str] = None
    status: InvitationStatus
    responded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvitationDetailOut(InvitationOut):
    event: Optional[EventOut] = None
    inviter: Optional[PublicUserOut] = None
    invitee: Optional[PublicUserOut] = None


class InvitationAcceptOut(BaseModel):
    invitation: InvitationOut
    event: EventOut


class InvitationStats(BaseModel):
    event_id: UUID
    pending: int = 0
    accepted: int = 0
    declined: int = 0
    expired: int = 0
    total: int = 0
    participants: int = 0


# ---------------------------------------------------------------- media

class MediaType(str, Enum):
    image = "image"
    video = "video"


class MediaFilter(str, Enum):
    images = "images"
    videos = "videos"


class MediaSort(str, Enum):
    newest = "newest"
    oldest = "oldest"
    popular = "popular"


class MediaOut(BaseModel):
    id: UUID
    event_id: UUID
    uploaded_by: UUID
    type: MediaType
    filename: str
    url: str
    caption: Optional[str] = None
    tags: List[str] = []
    likes: int
    created_at: datetime

    class Config:
        from_attributes = True


class MediaDetailOut(MediaOut):
    liked_by: List[UUID] = []
    liked_by_me: bool = False


class MediaUpdate(BaseModel):
    caption: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = None


class LikeToggleOut(BaseModel):
    media_id: UUID
    liked: bool
    likes: int


# ---------------------------------------------------------------- notifications

class Platform(str, Enum):
    ios = "ios"
    android = "android"
    web = "web"


class PushTokenType(str, Enum):
    expo = "expo"
    fcm = "fcm"
    apns = "apns"


class PushTokenRegister(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    platform: Platform
    token_type: PushTokenType = PushTokenType.expo
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    os_version: Optional[str] = None
    app_version: Optional[str] = None


class PushTokenOut(BaseModel):
    id: UUID
    token: str
    platform: Platform
    token_type: PushTokenType
    is_active: bool
    last_used: datetime
    device_name: Optional[str] = None

    class Config:
        from_attributes = True


class PushTokenDeactivate(BaseModel):
    token: str


class SendNotificationRequest(BaseModel):
    user_ids: List[UUID] = Field(..., min_length=1)
    title: str = Field(..., max_length=200)
    body: str = Field(..., max_length=1000)
    data: Dict[str, Any] = {}


class SendNotificationResult(BaseModel):
    tokens: int
    sent: int
    failed: int
    deactivated: int


class PushTokenStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_platform: Dict[str, int]


class CleanupResult(BaseModel):
    deleted: int


# ---------------------------------------------------------------- feedback

class FeedbackType(str, Enum):
    bug = "bug"
    feature = "feature"
    general = "general"


class FeedbackStatus(str, Enum):
    new = "new"
    reviewing = "reviewing"
    resolved = "resolved"
    closed = "closed"


class FeedbackCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    type: FeedbackType = FeedbackType.general
    email: Optional[EmailStr] = None
    platform: Optional[str] = Field(None, max_length=50)
    app_version: Optional[str] = Field(None, max_length=50)


class FeedbackOut(BaseModel):
    id: UUID
    message: str
    type: FeedbackType
    user_id: Optional[UUID] = None
    email: Optional[str] = None
    platform: Optional[str] = None
    app_version: Optional[str] = None
    status: FeedbackStatus
    admin_notes: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeedbackStatusUpdate(BaseModel):
    status: FeedbackStatus
    admin_notes: Optional[str] = Field(None, max_length=2000)


class FeedbackStats(BaseModel):
    total: int
    by_type: Dict[str, int]
    by_status: Dict[str, int]
