from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.auth import get_current_user, get_optional_user
from eventshare.db.models.user import User
from eventshare.db.session import get_session
from eventshare.schemas import (
    LikeToggleOut,
    MediaDetailOut,
    MediaFilter,
    MediaOut,
    MediaSort,
    MediaUpdate,
    PaginatedResponse,
    PaginationMetadata,
)
from eventshare.services.media_service import MediaService

router = APIRouter(tags=["media"])


def get_media_service(session: AsyncSession = Depends(get_session)) -> MediaService:
    return MediaService(session)


@router.post("/events/{event_id}/media", response_model=List[MediaOut], status_code=status.HTTP_201_CREATED)
async def upload_media(
    event_id: str,
    files: List[UploadFile] = File(...),
    caption: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service),
):
    """
    Upload up to 10 images or videos (50 MB each) to an event gallery.
    """
    return await media_service.upload(event_id, files, user, caption=caption, tags=tags)


@router.get("/events/{event_id}/media", response_model=PaginatedResponse[MediaOut])
async def get_event_media(
    event_id: str,
    media_filter: Optional[MediaFilter] = Query(None, alias="filter", description="images or videos"),
    sort: MediaSort = Query(MediaSort.newest),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    user: Optional[User] = Depends(get_optional_user),
    media_service: MediaService = Depends(get_media_service),
):
    total_count, media = await media_service.list_event_media(
        event_id,
        user,
        media_filter.value if media_filter else None,
        sort.value,
        skip=(page - 1) * per_page,
        limit=per_page,
    )
    return PaginatedResponse(
        items=[MediaOut.model_validate(m) for m in media],
        pagination=PaginationMetadata.build(total_count, page, per_page),
    )


@router.get("/media/{media_id}", response_model=MediaDetailOut)
async def get_media(
    media_id: str,
    user: Optional[User] = Depends(get_optional_user),
    media_service: MediaService = Depends(get_media_service),
):
    return await media_service.get_media_detail(media_id, user)


@router.put("/media/{media_id}", response_model=MediaOut)
async def update_media(
    media_id: str,
    payload: MediaUpdate,
    user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service),
):
    return await media_service.update_media(media_id, payload, user)


@router.delete("/media/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media(
    media_id: str,
    user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service),
):
    await media_service.delete_media(media_id, user)
    return None


@router.post("/media/{media_id}/like", response_model=LikeToggleOut)
async def toggle_like(
    media_id: str,
    user: User = Depends(get_current_user),
    media_service: MediaService = Depends(get_media_service),
):
    """Like the media, or remove the caller's like if already liked."""
    return await media_service.toggle_like(media_id, user)
