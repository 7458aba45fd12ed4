"""
Notification worker.

Consumes domain events from the ``eventshare.events`` exchange and delivers
them to the recipient over WebSocket and push.
"""
import asyncio
import json
import uuid
from aio_pika import connect_robust, ExchangeType
from aio_pika.exceptions import AMQPException
from eventshare.core.config import settings
from eventshare.core.logging import logger
from eventshare.db.session import AsyncSessionLocal
from eventshare.events.publisher import (
    EXCHANGE_NAME,
    INVITATION_SENT,
    INVITATION_ACCEPTED,
    INVITATION_DECLINED,
    EVENT_JOINED,
    MEDIA_LIKED,
)
from eventshare.services.notification_service import NotificationService
from eventshare.websocket.manager import manager

QUEUE_NAME = "eventshare.notifications"
BINDINGS = ("invitation.*", "event.*", "media.*")


def render_notification(data: dict) -> dict:
    """Title and body shown to the recipient of a domain event."""
    typ = data.get("type")
    event_name = data.get("event_name") or "an event"
    if typ == INVITATION_SENT:
        return {"title": "New invitation", "body": f"{data.get('inviter_name', 'Someone')} invited you to {event_name}"}
    if typ == INVITATION_ACCEPTED:
        return {"title": "Invitation accepted", "body": f"{data.get('invitee_name', 'Someone')} joined {event_name}"}
    if typ == INVITATION_DECLINED:
        return {"title": "Invitation declined", "body": f"{data.get('invitee_name', 'Someone')} declined your invitation"}
    if typ == EVENT_JOINED:
        return {"title": "New participant", "body": f"{data.get('user_name', 'Someone')} joined {event_name}"}
    if typ == MEDIA_LIKED:
        return {"title": "New like", "body": f"{data.get('user_name', 'Someone')} liked your photo in {event_name}"}
    return {"title": "EventShare", "body": "You have a new notification"}


def actor_id(data: dict):
    return data.get("user_id") or data.get("invitee_id") or data.get("inviter_id")


async def handle_message(body: bytes) -> bool:
    """
    Deliver one message. Returns False when it was skipped.
    """
    data = json.loads(body.decode())
    recipient = data.get("recipient_id")
    if not recipient:
        logger.warning(f"Dropping {data.get('type')} without recipient")
        return False
    if recipient == actor_id(data):
        # no notifications for your own actions
        return False

    notification = {**render_notification(data), "type": data.get("type"), "data": data}
    if manager.is_connected(recipient):
        await manager.send_personal_message(recipient, notification)
    else:
        logger.debug(f"User {recipient} is offline, push only")

    async with AsyncSessionLocal() as session:
        service = NotificationService(session)
        await service.send_to_users(
            [uuid.UUID(recipient)], notification["title"], notification["body"], data
        )
    return True


async def run_worker():
    max_retries = 10
    delay = 5  # seconds
    for attempt in range(1, max_retries + 1):
        try:
            connection = await connect_robust(settings.RABBITMQ_URL)
            logger.info("Successfully connected to RabbitMQ")
            break
        except (AMQPException, ConnectionError, OSError) as e:
            logger.error(f"RabbitMQ connection failed (attempt {attempt}/{max_retries}): {e}")
            if attempt == max_retries:
                raise
            await asyncio.sleep(delay)
    channel = await connection.channel()
    exchange = await channel.declare_exchange(EXCHANGE_NAME, ExchangeType.TOPIC, durable=True)
    queue = await channel.declare_queue(QUEUE_NAME, durable=True)
    for routing_key in BINDINGS:
        await queue.bind(exchange, routing_key=routing_key)
    async with queue.iterator() as queue_iter:
        async for message in queue_iter:
            async with message.process():
                try:
                    await handle_message(message.body)
                except Exception as e:
                    logger.exception(f"Error handling message: {e}")
