from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.auth import get_current_user, require_api_key
from eventshare.db.models.user import User
from eventshare.db.session import get_session
from eventshare.schemas import (
    CleanupResult,
    MessageResponse,
    PushTokenDeactivate,
    PushTokenOut,
    PushTokenRegister,
    PushTokenStats,
    SendNotificationRequest,
    SendNotificationResult,
)
from eventshare.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(session: AsyncSession = Depends(get_session)) -> NotificationService:
    return NotificationService(session)


@router.post("/register-token", response_model=PushTokenOut, status_code=status.HTTP_201_CREATED)
async def register_token(
    payload: PushTokenRegister,
    user: User = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Register a device push token, or refresh an existing one."""
    return await notification_service.register_token(payload, user)


@router.get("/tokens", response_model=List[PushTokenOut])
async def list_tokens(
    user: User = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    return await notification_service.list_tokens(user)


@router.post("/deactivate-token", response_model=MessageResponse)
async def deactivate_token(
    payload: PushTokenDeactivate,
    user: User = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    await notification_service.deactivate_token(payload.token, user)
    return {"message": "Push token deactivated"}


@router.post("/send", response_model=SendNotificationResult)
async def send_notification(
    payload: SendNotificationRequest,
    user: User = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service),
):
    return await notification_service.send_to_users(payload.user_ids, payload.title, payload.body, payload.data)


@router.get("/stats", response_model=PushTokenStats, dependencies=[Depends(require_api_key)])
async def token_stats(notification_service: NotificationService = Depends(get_notification_service)):
    return await notification_service.token_stats()


@router.delete("/cleanup", response_model=CleanupResult, dependencies=[Depends(require_api_key)])
async def cleanup_tokens(
    days_old: int = Query(30, ge=1, le=3650),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Delete inactive tokens not updated for ``days_old`` days."""
    return {"deleted": await notification_service.cleanup_inactive(days_old)}
