from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.auth import get_current_user
from eventshare.db.models import InvitationStatusEnum
from eventshare.db.models.user import User
from eventshare.db.session import get_session
from eventshare.schemas import (
    InvitationAcceptOut,
    InvitationCreate,
    InvitationDetailOut,
    InvitationOut,
    InvitationStats,
    InvitationStatus,
    PaginatedResponse,
    PaginationMetadata,
    PublicUserOut,
)
from eventshare.services.invitation_service import InvitationService

router = APIRouter(prefix="/invitations", tags=["invitations"])


def get_invitation_service(session: AsyncSession = Depends(get_session)) -> InvitationService:
    return InvitationService(session)


def _status(value: Optional[InvitationStatus]) -> Optional[InvitationStatusEnum]:
    return InvitationStatusEnum(value.value) if value else None


@router.post("", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
async def send_invitation(
    payload: InvitationCreate,
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    """Invite a user to an event the caller created or participates in."""
    return await invitation_service.send(payload, user)


@router.get("/received", response_model=PaginatedResponse[InvitationDetailOut])
async def get_received_invitations(
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    total_count, items = await invitation_service.list_received(
        user, _status(status_filter), skip=(page - 1) * per_page, limit=per_page
    )
    return PaginatedResponse(items=items, pagination=PaginationMetadata.build(total_count, page, per_page))


@router.get("/sent", response_model=PaginatedResponse[InvitationDetailOut])
async def get_sent_invitations(
    event_id: Optional[str] = Query(None),
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    total_count, items = await invitation_service.list_sent(
        user, event_id, _status(status_filter), skip=(page - 1) * per_page, limit=per_page
    )
    return PaginatedResponse(items=items, pagination=PaginationMetadata.build(total_count, page, per_page))


@router.get("/event/{event_id}/stats", response_model=InvitationStats)
async def get_event_invitation_stats(
    event_id: str,
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    return await invitation_service.event_stats(event_id, user)


@router.get("/event/{event_id}/available-users", response_model=PaginatedResponse[PublicUserOut])
async def get_available_users(
    event_id: str,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    """Users that can still be invited to the event, searchable by name or email."""
    total_count, users = await invitation_service.available_users(
        event_id, user, search, skip=(page - 1) * per_page, limit=per_page
    )
    return PaginatedResponse(
        items=[PublicUserOut.model_validate(u) for u in users],
        pagination=PaginationMetadata.build(total_count, page, per_page),
    )


@router.get("/{invitation_id}", response_model=InvitationDetailOut)
async def get_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    return await invitation_service.get_invitation(invitation_id, user)


@router.put("/{invitation_id}/accept", response_model=InvitationAcceptOut)
async def accept_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    return await invitation_service.accept(invitation_id, user)


@router.put("/{invitation_id}/decline", response_model=InvitationOut)
async def decline_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    return await invitation_service.decline(invitation_id, user)


@router.delete("/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service),
):
    """Inviter only; pending invitations only."""
    await invitation_service.cancel(invitation_id, user)
    return None
