from typing import Optional
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.auth import get_current_user, get_optional_user
from eventshare.db.models.user import User
from eventshare.db.session import get_session
from eventshare.schemas import (
    EventCreate,
    EventDetailOut,
    EventFilter,
    EventOut,
    EventUpdate,
    MembershipOut,
    PaginatedResponse,
    PaginationMetadata,
    ShareLinkOut,
    SharedEventOut,
    UploadedImageOut,
)
from eventshare.services.event_service import EventService

router = APIRouter(prefix="/events", tags=["events"])


def get_event_service(session: AsyncSession = Depends(get_session)) -> EventService:
    return EventService(session)


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    payload: EventCreate,
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    """Create an event; the caller becomes its creator and first participant."""
    return await event_service.create_event(payload, user)


@router.get("", response_model=PaginatedResponse[EventOut])
async def get_events(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    per_page: int = Query(20, ge=1, le=100, description="Number of items per page"),
    user: Optional[User] = Depends(get_optional_user),
    event_service: EventService = Depends(get_event_service),
):
    """
    List events visible to the caller, newest first.
    - Anonymous callers see public events only
    - Authenticated callers also see events they created or joined
    """
    total_count, events = await event_service.list_events(user, skip=(page - 1) * per_page, limit=per_page)
    return PaginatedResponse(
        items=[EventOut.model_validate(e) for e in events],
        pagination=PaginationMetadata.build(total_count, page, per_page),
    )


@router.post("/upload-image", response_model=UploadedImageOut, status_code=status.HTTP_201_CREATED)
async def upload_cover_image(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    """Upload an event cover image (images only, up to 5 MB)."""
    return await event_service.upload_cover_image(file, user)


@router.get("/user/{user_id}", response_model=PaginatedResponse[EventOut])
async def get_user_events(
    user_id: str,
    event_filter: EventFilter = Query(EventFilter.all, alias="filter", description="all, created or joined"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    total_count, events = await event_service.list_user_events(
        user_id, user, event_filter.value, skip=(page - 1) * per_page, limit=per_page
    )
    return PaginatedResponse(
        items=[EventOut.model_validate(e) for e in events],
        pagination=PaginationMetadata.build(total_count, page, per_page),
    )


@router.get("/share/{event_id}/{token}", response_model=SharedEventOut)
async def get_shared_event(
    event_id: str,
    token: str,
    user: Optional[User] = Depends(get_optional_user),
    event_service: EventService = Depends(get_event_service),
):
    """
    Resolve a share link. Works for private events; participant details
    are only returned to authenticated callers.
    """
    return await event_service.get_shared_event(event_id, token, user)


@router.post("/share/{event_id}/{token}/join", response_model=MembershipOut)
async def join_via_share_link(
    event_id: str,
    token: str,
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    event = await event_service.join_via_share_link(event_id, token, user)
    return {"event_id": event.id, "participant_count": event.participant_count, "message": "Joined event"}


@router.get("/{event_id}", response_model=EventDetailOut)
async def get_event_detail(
    event_id: str,
    user: Optional[User] = Depends(get_optional_user),
    event_service: EventService = Depends(get_event_service),
):
    return await event_service.get_event_detail(event_id, user)


@router.put("/{event_id}", response_model=EventOut)
async def update_event(
    event_id: str,
    payload: EventUpdate,
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    """Creator only. Switching a public event to private revokes its share link."""
    return await event_service.update_event(event_id, payload, user)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: str,
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    await event_service.delete_event(event_id, user)
    return None


@router.post("/{event_id}/join", response_model=MembershipOut)
async def join_event(
    event_id: str,
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    event = await event_service.join_event(event_id, user)
    return {"event_id": event.id, "participant_count": event.participant_count, "message": "Joined event"}


@router.delete("/{event_id}/leave", response_model=MembershipOut)
async def leave_event(
    event_id: str,
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    event = await event_service.leave_event(event_id, user)
    return {"event_id": event.id, "participant_count": event.participant_count, "message": "Left event"}


@router.post("/{event_id}/share", response_model=ShareLinkOut)
async def share_event(
    event_id: str,
    user: User = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
):
    """Generate a new share link (replacing the previous one) with its QR code."""
    return await event_service.share_event(event_id, user)
