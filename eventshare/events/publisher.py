"""
Domain event publisher.

Events go to the ``eventshare.events`` topic exchange. Publishing is a side
effect of a request that has already been committed, so failures are logged
and never propagated.
"""
import json
from aio_pika import connect_robust, Message, ExchangeType, DeliveryMode
from aio_pika.exceptions import AMQPException
from eventshare.core.config import settings
from eventshare.core.logging import logger

EXCHANGE_NAME = "eventshare.events"

INVITATION_SENT = "invitation.sent"
INVITATION_ACCEPTED = "invitation.accepted"
INVITATION_DECLINED = "invitation.declined"
EVENT_JOINED = "event.joined"
MEDIA_LIKED = "media.liked"

_connection = None
_channel = None


async def get_rabbit_connection():
    global _connection, _channel
    if _connection and not _connection.is_closed:
        return _connection, _channel
    _connection = await connect_robust(settings.RABBITMQ_URL)
    _channel = await _connection.channel()
    return _connection, _channel


async def publish_event(routing_key: str, payload: dict) -> bool:
    """
    Publish ``payload`` (with ``type`` set to the routing key) to the exchange.

    Returns:
        True if the broker accepted the message, False otherwise
    """
    if not settings.EVENT_BUS_ENABLED:
        logger.debug(f"Event bus disabled, dropping {routing_key}")
        return False

    body = json.dumps({"type": routing_key, **payload}, default=str).encode()
    try:
        _, channel = await get_rabbit_connection()
        exchange = await channel.declare_exchange(EXCHANGE_NAME, ExchangeType.TOPIC, durable=True)
        message = Message(body, content_type="application/json", delivery_mode=DeliveryMode.PERSISTENT)
        await exchange.publish(message, routing_key=routing_key)
    except (AMQPException, ConnectionError, OSError) as e:
        logger.error(f"Failed to publish {routing_key}: {e}")
        return False
    logger.debug(f"Published {routing_key}")
    return True


async def close_connection() -> None:
    global _connection, _channel
    if _connection and not _connection.is_closed:
        await _connection.close()
    _connection = None
    _channel = None
