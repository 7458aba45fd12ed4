from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.auth import get_optional_user, require_api_key
from eventshare.db.models.user import User
from eventshare.db.session import get_session
from eventshare.schemas import (
    FeedbackCreate,
    FeedbackOut,
    FeedbackStats,
    FeedbackStatus,
    FeedbackStatusUpdate,
    FeedbackType,
    PaginatedResponse,
    PaginationMetadata,
)
from eventshare.services.feedback_service import FeedbackService

router = APIRouter(prefix="/feedback", tags=["feedback"])


def get_feedback_service(session: AsyncSession = Depends(get_session)) -> FeedbackService:
    return FeedbackService(session)


@router.post("", response_model=FeedbackOut, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    payload: FeedbackCreate,
    user: Optional[User] = Depends(get_optional_user),
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    """Anyone can submit feedback; authenticated callers are attached to it."""
    return await feedback_service.submit(payload, user)


@router.get("", response_model=PaginatedResponse[FeedbackOut], dependencies=[Depends(require_api_key)])
async def list_feedback(
    status_filter: Optional[FeedbackStatus] = Query(None, alias="status"),
    type_filter: Optional[FeedbackType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    total_count, items = await feedback_service.list_feedback(
        status_filter.value if status_filter else None,
        type_filter.value if type_filter else None,
        skip=(page - 1) * per_page,
        limit=per_page,
    )
    return PaginatedResponse(
        items=[FeedbackOut.model_validate(f) for f in items],
        pagination=PaginationMetadata.build(total_count, page, per_page),
    )


@router.get("/stats", response_model=FeedbackStats, dependencies=[Depends(require_api_key)])
async def feedback_stats(feedback_service: FeedbackService = Depends(get_feedback_service)):
    return await feedback_service.stats()


@router.get("/{feedback_id}", response_model=FeedbackOut, dependencies=[Depends(require_api_key)])
async def get_feedback(
    feedback_id: str,
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    return await feedback_service.get_feedback(feedback_id)


@router.patch("/{feedback_id}/status", response_model=FeedbackOut, dependencies=[Depends(require_api_key)])
async def update_feedback_status(
    feedback_id: str,
    payload: FeedbackStatusUpdate,
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    """Resolving or closing feedback stamps ``resolved_at``."""
    return await feedback_service.update_status(feedback_id, payload)
