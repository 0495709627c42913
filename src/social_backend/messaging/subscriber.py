"""Domain event consumption.

Every ``subscribe`` call declares its own exclusive, server-named queue that
the broker deletes together with the connection, binds it to the shared
topic exchange with one routing pattern, and starts a delivery loop task.
Messages of one queue are handled strictly one after another; loops of
different queues run concurrently.

A delivery is acknowledged only after its handler succeeded. When the
handler raises, the subscription's ``HandlerFailurePolicy`` settles it:

- ``dead_letter``: rejected without requeue; the broker moves it to the
  dead-letter exchange and from there to this process's durable
  dead-letter queue. The queue's own name is the dead-letter routing key,
  so processes sharing the exchange never receive each other's failures.
  The queue is bounded by a message TTL and a maximum length.
- ``requeue``: negatively acknowledged with requeue once; a message that
  fails again after redelivery is rejected.
- ``discard``: rejected without requeue and without dead-lettering.

Bodies that are not JSON objects, or that do not validate against the
subscription's payload model, are rejected without requeue.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from aio_pika import ExchangeType
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage, AbstractQueue
from loguru import logger
from pydantic import BaseModel, ValidationError

from .codec import decode_payload
from .connection import ConnectionManager
from .core import EventDecodeError, HandlerRegistrationError
from .dispatch import HandlerDispatcher, T_Handler


class HandlerFailurePolicy(StrEnum):
    """What happens to a delivery whose handler raised."""

    DEAD_LETTER = "dead_letter"
    REQUEUE = "requeue"
    DISCARD = "discard"


@dataclass
class Subscription:
    """One routing pattern bound to one private queue and one handler."""

    pattern: str
    handler: Callable[[Any], Any]
    model: type[BaseModel] | None
    failure_policy: HandlerFailurePolicy
    queue: AbstractQueue | None = None
    task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def queue_name(self) -> str | None:
        return self.queue.name if self.queue is not None else None

    @property
    def is_active(self) -> bool:
        return self.task is not None and not self.task.done()


class Subscriber:
    """Binds private queues to routing patterns and feeds deliveries to handlers."""

    def __init__(
        self,
        connection_manager: ConnectionManager,
        *,
        dispatcher: HandlerDispatcher | None = None,
        failure_policy: HandlerFailurePolicy = HandlerFailurePolicy.DEAD_LETTER,
        dead_letter_queue: str | None = None,
        dead_letter_ttl: int = 7 * 24 * 3600,
        dead_letter_max_length: int = 10_000,
    ) -> None:
        """Initialize the subscriber.

        Args:
            connection_manager: Owner of the shared channel.
            dispatcher: Resolves and runs handlers, a registry-backed one by default.
            failure_policy: Default policy for subscriptions that do not set their own.
            dead_letter_queue: Durable queue collecting this process's dead-lettered
                deliveries, ``{exchange}.dead_letter`` by default.
            dead_letter_ttl: Seconds a dead-lettered message is kept.
            dead_letter_max_length: Messages kept before the oldest are dropped.
        """
        self._connection_manager = connection_manager
        self._dispatcher = dispatcher or HandlerDispatcher()
        self._failure_policy = HandlerFailurePolicy(failure_policy)
        self._dead_letter_exchange = f"{connection_manager.exchange_name}.dead_letter"
        self._dead_letter_queue = dead_letter_queue or self._dead_letter_exchange
        self._dead_letter_arguments = {
            "x-message-ttl": dead_letter_ttl * 1000,
            "x-max-length": dead_letter_max_length,
        }
        self._subscriptions: list[Subscription] = []

        connection_manager.add_reconnect_hook(self.resubscribe_all)

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    @property
    def dead_letter_exchange(self) -> str:
        return self._dead_letter_exchange

    @property
    def dead_letter_queue(self) -> str:
        return self._dead_letter_queue

    @property
    def dead_letter_arguments(self) -> dict[str, int]:
        """Queue arguments bounding the dead-letter queue."""
        return dict(self._dead_letter_arguments)

    async def subscribe(
        self,
        pattern: str,
        handler: T_Handler,
        *,
        model: type[BaseModel] | None = None,
        failure_policy: HandlerFailurePolicy | str | None = None,
    ) -> Subscription:
        """Bind a new private queue to ``pattern`` and start delivering to ``handler``.

        Args:
            pattern: Topic pattern, e.g. ``post.deleted``, ``post.*`` or ``#``.
            handler: Function, ``EventHandler`` instance or ``EventHandler`` subclass.
            model: Optional Pydantic model the payload is validated into.
            failure_policy: Overrides the subscriber default for this subscription.

        Returns:
            The active subscription.

        Raises:
            HandlerRegistrationError: If the pattern, model or handler is invalid.
            SystemExit: If connecting exhausts the retry policy.
        """
        if not pattern or not pattern.strip():
            raise HandlerRegistrationError("Routing pattern must not be empty")
        if model is not None and not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise HandlerRegistrationError(f"Payload model must be a Pydantic BaseModel subclass, got: {model}")

        try:
            policy = HandlerFailurePolicy(failure_policy) if failure_policy is not None else self._failure_policy
        except ValueError as e:
            raise HandlerRegistrationError(f"Unknown handler failure policy: {failure_policy}") from e

        subscription = Subscription(
            pattern=pattern,
            handler=self._dispatcher.resolve(handler),
            model=model,
            failure_policy=policy,
        )
        await self._start(subscription)
        self._subscriptions.append(subscription)

        logger.info(f"Subscribed to event: {pattern} (queue={subscription.queue_name}, on_failure={policy})")
        return subscription

    async def resubscribe_all(self) -> None:
        """Declare and bind fresh queues for every subscription, e.g. after a reconnect."""
        for subscription in self._subscriptions:
            await self._stop(subscription)
            await self._start(subscription)
            logger.info(f"Resubscribed to event: {subscription.pattern} (queue={subscription.queue_name})")

    async def close(self) -> None:
        """Stop every delivery loop. Queues go away with the connection."""
        for subscription in self._subscriptions:
            await self._stop(subscription)
        self._subscriptions.clear()

    async def _start(self, subscription: Subscription) -> None:
        channel = await self._connection_manager.connect()
        exchange = self._connection_manager.exchange

        arguments = None
        if subscription.failure_policy is not HandlerFailurePolicy.DISCARD:
            await self._declare_dead_letter_topology(channel)
            arguments = {
                "x-dead-letter-exchange": self._dead_letter_exchange,
                "x-dead-letter-routing-key": self._dead_letter_queue,
            }

        queue = await channel.declare_queue(None, exclusive=True, auto_delete=True, arguments=arguments)
        await queue.bind(exchange, routing_key=subscription.pattern)

        subscription.queue = queue
        subscription.task = asyncio.create_task(
            self._consume(subscription),
            name=f"consume:{subscription.pattern}:{queue.name}",
        )

    async def _stop(self, subscription: Subscription) -> None:
        task, subscription.task = subscription.task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _declare_dead_letter_topology(self, channel: AbstractChannel) -> None:
        dead_letter_exchange = await channel.declare_exchange(self._dead_letter_exchange, ExchangeType.TOPIC, durable=True)
        dead_letter_queue = await channel.declare_queue(
            self._dead_letter_queue,
            durable=True,
            arguments=self._dead_letter_arguments,
        )
        await dead_letter_queue.bind(dead_letter_exchange, routing_key=self._dead_letter_queue)

    async def _consume(self, subscription: Subscription) -> None:
        """Delivery loop of one subscription; one message at a time."""
        queue = subscription.queue
        try:
            async with queue.iterator() as messages:
                async for message in messages:
                    await self._process(subscription, message)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            # Channel or connection went away; the reconnect hook starts a new loop
            logger.warning(f"Delivery loop for {subscription.pattern} stopped: {e}")

    async def _process(self, subscription: Subscription, message: AbstractIncomingMessage) -> None:
        routing_key = message.routing_key or subscription.pattern

        try:
            payload = decode_payload(message.body)
            event = subscription.model.model_validate(payload) if subscription.model is not None else payload
        except (EventDecodeError, ValidationError) as e:
            logger.error(f"Rejecting undecodable {routing_key} message {message.message_id}: {e}")
            await message.reject(requeue=False)
            return

        logger.debug(f"Received event {routing_key} on {subscription.queue_name}")
        outcome = await self._dispatcher.dispatch(subscription.handler, event)

        if outcome.succeeded:
            await message.ack()
            return

        if subscription.failure_policy is HandlerFailurePolicy.REQUEUE and not message.redelivered:
            logger.warning(f"Handler for {routing_key} failed, requeueing message {message.message_id}")
            await message.nack(requeue=True)
        elif subscription.failure_policy is HandlerFailurePolicy.DISCARD:
            logger.error(f"Handler for {routing_key} failed, discarding message {message.message_id}")
            await message.reject(requeue=False)
        else:
            logger.error(
                f"Handler for {routing_key} failed, dead-lettering message {message.message_id} to {self._dead_letter_queue}"
            )
            await message.reject(requeue=False)
