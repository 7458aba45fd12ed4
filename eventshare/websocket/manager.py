from typing import Dict, List
from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect
import asyncio
import json
from eventshare.core.logging import logger


class ConnectionManager:
    """Live notification sockets, keyed by user id (several per user)."""

    def __init__(self):
        self.active: Dict[str, List[WebSocket]] = {}
        self.lock = asyncio.Lock()

    async def connect(self, user_id: str, websocket: WebSocket):
        await websocket.accept()
        async with self.lock:
            self.active.setdefault(str(user_id), []).append(websocket)
        logger.debug(f"WebSocket connected for user {user_id}")

    async def disconnect(self, user_id: str, websocket: WebSocket):
        async with self.lock:
            conns = self.active.get(str(user_id), [])
            if websocket in conns:
                conns.remove(websocket)
            if not conns:
                self.active.pop(str(user_id), None)

    def is_connected(self, user_id) -> bool:
        return bool(self.active.get(str(user_id)))

    async def send_personal_message(self, user_id, message: dict) -> int:
        """
        Send to every socket of ``user_id``; broken sockets are dropped.

        Returns:
            Number of sockets the message reached
        """
        conns = list(self.active.get(str(user_id), []))
        data = json.dumps(message, default=str)
        delivered = 0
        for ws in conns:
            try:
                await ws.send_text(data)
                delivered += 1
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug(f"Dropping dead socket for user {user_id}: {e}")
                await self.disconnect(user_id, ws)
        return delivered


manager = ConnectionManager()
