"""Core Messaging Components.

This module contains the fundamental abstractions shared by the connection
manager, the publisher and the subscriber.

## Key Components

- **EventHandler**: Base class for dependency-injectable event handlers
- **HandlerOutcome**: Tagged result of one handler invocation
- **MessagingError**: Base exception for all messaging related errors
- **BrokerConnectionError**: Raised when the broker cannot be reached
- **PublishError**: Raised when an event cannot be handed to the broker
- **HandlerRegistrationError**: Raised when a subscription is invalid
- **EventDecodeError**: Raised when a delivery body is not a JSON object

## Usage Example with Dependency Injection

```python
from social_backend.messaging.core import EventHandler
from social_backend.events.types import PostDeletedEvent

class PostDeletedMediaHandler(EventHandler[PostDeletedEvent]):
    def __init__(self, media_service: MediaService):
        self.media_service = media_service

    async def handle(self, event: PostDeletedEvent) -> None:
        await self.media_service.delete_media(event.media_ids)

# The subscriber instantiates the handler with MediaService resolved
# from the ServiceRegistry.
await subscriber.subscribe("post.deleted", PostDeletedMediaHandler, model=PostDeletedEvent)
```

"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class EventHandler[T_Event](ABC):
    """Base class for dependency-injectable event handlers.

    Event handlers inherit from this class and implement the handle method.
    The generic type parameter is the decoded payload type the handler
    receives: a Pydantic model when the subscription declares one, a plain
    dict otherwise.

    Handlers must be self-contained: everything they need is in the payload,
    they never call back to the producing service.
    """

    @abstractmethod
    async def handle(self, event: T_Event) -> Any:
        """Handle the event.

        Args:
            event: The decoded event payload.

        Raises:
            Any exception that occurs during handling. The dispatcher catches
            it and the subscription's failure policy decides what happens to
            the delivery.
        """

    def __call__(self, event: T_Event) -> Any:
        """Make the handler callable.

        This allows handler instances to be passed directly to ``subscribe``.
        """
        return self.handle(event)


@dataclass(frozen=True)
class HandlerOutcome:
    """Result of invoking a handler for one delivery."""

    succeeded: bool
    result: Any = None
    error: BaseException | None = None

    @classmethod
    def success(cls, result: Any = None) -> "HandlerOutcome":
        return cls(succeeded=True, result=result)

    @classmethod
    def failure(cls, error: BaseException) -> "HandlerOutcome":
        return cls(succeeded=False, error=error)


class MessagingError(Exception):
    """Base exception for all messaging related errors.

    Use this for catching any broker related error:
        ```python
        try:
            await publisher.publish("post.created", payload)
        except MessagingError as e:
            logger.error(f"Messaging error: {e}")
        ```
    """


class BrokerConnectionError(MessagingError):
    """Raised when a connection attempt to the broker fails."""


class PublishError(MessagingError):
    """Raised when an event could not be handed to the broker.

    The caller's local write is not rolled back; the event is simply lost.
    """

    def __init__(self, routing_key: str, reason: str):
        self.routing_key = routing_key
        super().__init__(f"Failed to publish {routing_key}: {reason}")


class HandlerRegistrationError(MessagingError):
    """Raised when a subscription cannot be registered.

    This occurs when:
    - The handler is not callable
    - The routing pattern is empty
    - The payload model is not a Pydantic BaseModel
    """


class EventDecodeError(MessagingError):
    """Raised when a delivery body is not a JSON object."""
