"""Cross-service domain event distribution over a shared topic exchange.

The messaging package connects the services to the shared RabbitMQ broker:

- **ConnectionManager**: one connection and one channel per process,
  bounded-retry connect, idempotent exchange declaration
- **Publisher**: at-most-once publishing of routing key + JSON payload
- **Subscriber**: private auto-deleted queue per routing pattern, sequential
  delivery loop, ack only on handler success
- **EventHandler**: base class for dependency-injectable handlers

## Quick Start

```python
from social_backend.messaging import ConnectionManager, Publisher, Subscriber

manager = ConnectionManager.from_settings(get_settings())
publisher = Publisher(manager)
subscriber = Subscriber(manager)

async def index_post(payload: dict) -> None:
    print(f"Indexing {payload['postId']}")

await subscriber.subscribe("post.created", index_post)
await publisher.publish("post.created", {"postId": "42", "userId": "7", "content": "hi"})
```

"""

from .connection import ConnectionManager, ConnectionState, ConnectResult, RetryPolicy
from .core import (
    BrokerConnectionError,
    EventDecodeError,
    EventHandler,
    HandlerOutcome,
    HandlerRegistrationError,
    MessagingError,
    PublishError,
)
from .dispatch import HandlerDispatcher
from .publisher import Publisher
from .subscriber import HandlerFailurePolicy, Subscriber, Subscription

__all__ = [
    "BrokerConnectionError",
    "ConnectResult",
    "ConnectionManager",
    "ConnectionState",
    "EventDecodeError",
    "EventHandler",
    "HandlerDispatcher",
    "HandlerFailurePolicy",
    "HandlerOutcome",
    "HandlerRegistrationError",
    "MessagingError",
    "PublishError",
    "Publisher",
    "RetryPolicy",
    "Subscriber",
    "Subscription",
]
