"""Database models package."""
from eventshare.db.models.user import User
from eventshare.db.models.event import Event
from eventshare.db.models.participant import EventParticipant, ParticipantRoleEnum
from eventshare.db.models.invitation import Invitation, InvitationStatusEnum, ACTIVE_INVITATION_STATUSES
from eventshare.db.models.media import Media, MediaLike, MediaTypeEnum
from eventshare.db.models.push_token import PushToken, PlatformEnum, PushTokenTypeEnum
from eventshare.db.models.feedback import Feedback, FeedbackTypeEnum, FeedbackStatusEnum

__all__ = [
    "User",
    "Event",
    "EventParticipant",
    "ParticipantRoleEnum",
    "Invitation",
    "InvitationStatusEnum",
    "ACTIVE_INVITATION_STATUSES",
    "Media",
    "MediaLike",
    "MediaTypeEnum",
    "PushToken",
    "PlatformEnum",
    "PushTokenTypeEnum",
    "Feedback",
    "FeedbackTypeEnum",
    "FeedbackStatusEnum",
]
