from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.auth import get_current_user
from eventshare.db.models.user import User
from eventshare.db.session import get_session
from eventshare.schemas import ChangePasswordRequest, MessageResponse, ProfileUpdate, UserOut, UserStats
from eventshare.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(session: AsyncSession = Depends(get_session)) -> UserService:
    return UserService(session)


@router.put("/me", response_model=UserOut)
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    return await user_service.update_profile(current_user, payload)


@router.put("/me/password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    await user_service.change_password(current_user, payload.current_password, payload.new_password)
    return {"message": "Password updated"}


@router.post("/me/profile-image", response_model=UserOut)
async def upload_profile_image(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """Replace the profile image (JPEG, PNG or WebP, up to 5 MB)."""
    return await user_service.upload_profile_image(current_user, file)


@router.delete("/me/profile-image", response_model=UserOut)
async def delete_profile_image(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    return await user_service.delete_profile_image(current_user)


@router.get("/{user_id}/stats", response_model=UserStats)
async def get_user_stats(
    user_id: str,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """Upload and event counts, cached for 60 seconds."""
    return await user_service.get_stats(user_id)
