"""Initial schema: users, events, participants, invitations, media, push tokens, feedback

Revision ID: 4c1e0b7a9d23
Revises: 
Create Date: 2026-10-19 09:12:44.318201

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4c1e0b7a9d23'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    'participantroleenum': ('creator', 'participant'),
    'invitationstatusenum': ('pending', 'accepted', 'declined', 'expired'),
    'mediatypeenum': ('image', 'video'),
    'platformenum': ('ios', 'android', 'web'),
    'pushtokentypeenum': ('expo', 'fcm', 'apns'),
    'feedbacktypeenum': ('bug', 'feature', 'general'),
    'feedbackstatusenum': ('new', 'reviewing', 'resolved', 'closed'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind())

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('profile_image', sa.String(1024), nullable=True),
        sa.Column('profile_image_id', sa.String(512), nullable=True),
        sa.Column('is_email_verified', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('verification_code', sa.String(6), nullable=True),
        sa.Column('verification_code_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verification_code_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_users_email', 'users', ['email'])

    # Create events table
    op.create_table(
        'events',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('date', sa.String(50), nullable=False),
        sa.Column('time', sa.String(50), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('is_private', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('cover_image', sa.String(1024), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('participant_count', sa.Integer, nullable=False, server_default='1'),
        sa.Column('share_token', sa.String(64), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    )
    op.create_index('idx_event_creator', 'events', ['created_by'])
    op.create_index('idx_event_created_at', 'events', ['created_at'])
    op.create_index('idx_event_privacy', 'events', ['is_private'])

    # Create event_participants table
    op.create_table(
        'event_participants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', _enum('participantroleenum'), nullable=False, server_default='participant'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_participant')
    )
    op.create_index('idx_participant_user', 'event_participants', ['user_id'])
    op.create_index('idx_participant_event', 'event_participants', ['event_id'])

    # Create invitations table
    op.create_table(
        'invitations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='SET NULL'), nullable=True),
        sa.Column('inviter_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('invitee_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('message', sa.String(500), nullable=True),
        sa.Column('status', _enum('invitationstatusenum'), nullable=False, server_default='pending'),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    )
    op.create_index('idx_invitation_event_invitee', 'invitations', ['event_id', 'invitee_id'])
    op.create_index('idx_invitation_invitee_status', 'invitations', ['invitee_id', 'status'])
    op.create_index('idx_invitation_inviter', 'invitations', ['inviter_id'])

    # Create media tables
    op.create_table(
        'media',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('uploaded_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('type', _enum('mediatypeenum'), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('storage_id', sa.String(512), nullable=False),
        sa.Column('url', sa.String(1024), nullable=False),
        sa.Column('caption', sa.String(500), nullable=True),
        sa.Column('tags', sa.JSON, nullable=False, server_default='[]'),
        sa.Column('likes', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    )
    op.create_index('idx_media_event_created', 'media', ['event_id', 'created_at'])
    op.create_index('idx_media_uploader', 'media', ['uploaded_by'])

    op.create_table(
        'media_likes',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('media_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('media.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('media_id', 'user_id', name='uq_media_like')
    )
    op.create_index('idx_media_like_media', 'media_likes', ['media_id'])

    # Create push_tokens table
    op.create_table(
        'push_tokens',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('token', sa.String(512), nullable=False, unique=True),
        sa.Column('platform', _enum('platformenum'), nullable=False),
        sa.Column('token_type', _enum('pushtokentypeenum'), nullable=False, server_default='expo'),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_used', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('device_id', sa.String(255), nullable=True),
        sa.Column('device_name', sa.String(255), nullable=True),
        sa.Column('os_version', sa.String(50), nullable=True),
        sa.Column('app_version', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    )
    op.create_index('idx_push_token_user_active', 'push_tokens', ['user_id', 'is_active'])
    op.create_index('idx_push_token_last_used', 'push_tokens', ['last_used'])

    # Create feedback table
    op.create_table(
        'feedback',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('message', sa.String(2000), nullable=False),
        sa.Column('type', _enum('feedbacktypeenum'), nullable=False, server_default='general'),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('platform', sa.String(50), nullable=True),
        sa.Column('app_version', sa.String(50), nullable=True),
        sa.Column('status', _enum('feedbackstatusenum'), nullable=False, server_default='new'),
        sa.Column('admin_notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True)
    )
    op.create_index('idx_feedback_status', 'feedback', ['status'])
    op.create_index('idx_feedback_type', 'feedback', ['type'])
    op.create_index('idx_feedback_created_at', 'feedback', ['created_at'])


def downgrade() -> None:
    op.drop_table('feedback')
    op.drop_table('push_tokens')
    op.drop_table('media_likes')
    op.drop_table('media')
    op.drop_table('invitations')
    op.drop_table('event_participants')
    op.drop_table('events')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(op.get_bind())
