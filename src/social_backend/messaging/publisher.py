"""Domain event publishing.

Publishing is at-most-once unless the connection manager opened the channel
with publisher confirms: the message is handed to the channel and the call
returns, nothing is retried and a frame dropped by a failing channel is lost.
Callers publish after their local write has been committed, so a publish
failure never undoes that write.
"""

from datetime import UTC, datetime
from uuid import uuid4

from aio_pika import DeliveryMode, Message
from loguru import logger

from .codec import CONTENT_TYPE, Payload, encode_payload
from .connection import ConnectionManager
from .core import PublishError


class Publisher:
    """Sends domain events to the shared topic exchange."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self._connection_manager = connection_manager

    async def publish(self, routing_key: str, payload: Payload) -> None:
        """Publish one event.

        Connects lazily when no channel exists yet, so the first publish of a
        process pays the connect cost.

        Args:
            routing_key: Dot-delimited event type, e.g. ``post.created``.
            payload: Self-contained event payload.

        Raises:
            PublishError: If the payload cannot be encoded or the channel rejects the send.
            SystemExit: If connecting exhausts the retry policy.
        """
        if not routing_key:
            raise PublishError(routing_key, "routing key must not be empty")

        try:
            body = encode_payload(payload)
        except (TypeError, ValueError) as e:
            raise PublishError(routing_key, f"payload is not serializable: {e}") from e

        if not self._connection_manager.is_connected:
            await self._connection_manager.connect()

        exchange = self._connection_manager.exchange
        if exchange is None:
            raise PublishError(routing_key, "channel is not ready")

        message = Message(
            body,
            content_type=CONTENT_TYPE,
            delivery_mode=DeliveryMode.PERSISTENT if self._connection_manager.exchange_durable else DeliveryMode.NOT_PERSISTENT,
            message_id=uuid4().hex,
            timestamp=datetime.now(UTC),
            type=routing_key,
        )

        try:
            await exchange.publish(message, routing_key=routing_key)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to publish event {routing_key}: {e}")
            raise PublishError(routing_key, str(e)) from e

        logger.info(f"Event published: {routing_key}")
