import asyncio
import os
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Request, Query, status, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError, InterfaceError
from eventshare.api.v1.routes import (
    auth as auth_router,
    users as users_router,
    events as events_router,
    media as media_router,
    invitations as invitations_router,
    notifications as notifications_router,
    feedback as feedback_router,
    health as health_router,
)
from eventshare.cache import redis_client
from eventshare.core.config import settings
from eventshare.core.logging import logger
from eventshare.core.rate_limit import limiter
from eventshare.core.security import decode_token, is_token_revoked
from eventshare.db.session import engine, Base
from eventshare.events import publisher
from eventshare.events.consumer import run_worker
from eventshare.jobs.maintenance import start_maintenance_loop
from eventshare.middleware.security_headers import SecurityHeadersMiddleware
from eventshare.websocket.manager import manager

app = FastAPI(title="EventShare")

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def database_unavailable_handler(request: Request, exc: Exception):
    logger.error(f"Database unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable, please try again"},
    )


api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router.router)
api_router.include_router(users_router.router)
api_router.include_router(events_router.router)
api_router.include_router(media_router.router)
api_router.include_router(invitations_router.router)
api_router.include_router(notifications_router.router)
api_router.include_router(feedback_router.router)
api_router.include_router(health_router.router)

app.include_router(api_router)

# Locally stored uploads are served from here; MEDIA_BASE_URL must point at it
os.makedirs(settings.MEDIA_ROOT, exist_ok=True)
app.mount("/media-files", StaticFiles(directory=settings.MEDIA_ROOT), name="media-files")

_background_tasks = []


@app.on_event("startup")
async def on_startup():
    # create tables (migrations are the source of truth in deployed environments)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    # notification worker runs in-process alongside the API
    if settings.EVENT_BUS_ENABLED:
        _background_tasks.append(asyncio.create_task(run_worker()))
    if settings.MAINTENANCE_LOOP_ENABLED:
        task = start_maintenance_loop()
        if task is not None:
            _background_tasks.append(task)
    logger.info(f"EventShare API started ({settings.ENVIRONMENT})")


@app.on_event("shutdown")
async def on_shutdown():
    for task in _background_tasks:
        task.cancel()
    _background_tasks.clear()
    await publisher.close_connection()
    await redis_client.cache.close()


@app.websocket("/ws/notifications/{user_id}")
async def websocket_endpoint(websocket: WebSocket, user_id: str, token: str = Query(...)):
    """
    WebSocket endpoint with JWT authentication.
    Clients must provide a valid access token as a query parameter.
    Example: ws://localhost:8000/ws/notifications/{user_id}?token=your_jwt_token
    """
    try:
        if await is_token_revoked(token):
            logger.warning(f"WebSocket connection attempt with revoked token for user {user_id}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        payload = decode_token(token)

        if payload.get("type") != "access":
            logger.warning(f"WebSocket connection attempt with invalid token type for user {user_id}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        token_user_id = str(payload.get("sub"))
        if token_user_id != user_id:
            logger.warning(f"WebSocket connection attempt: token user_id {token_user_id} does not match path user_id {user_id}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await manager.connect(user_id, websocket)
        logger.info(f"WebSocket connection established for user {user_id}")

        while True:
            # Keep the connection open, clients are not expected to send anything
            await websocket.receive_text()

    except ValueError as e:
        logger.warning(f"WebSocket connection rejected for user {user_id}: {str(e)}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
    except WebSocketDisconnect:
        await manager.disconnect(user_id, websocket)
        logger.info(f"WebSocket disconnected for user {user_id}")
