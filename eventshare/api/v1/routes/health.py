from fastapi import APIRouter
from typing import Dict
from eventshare.core.config import settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=Dict[str, str])
async def health_check():
    """
    Liveness probe.

    Returns:
        Dict with the service status and environment
    """
    return {"status": "healthy", "environment": settings.ENVIRONMENT}
