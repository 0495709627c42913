"""Domain events of the social backend.

This module provides the event payload types and registers the handlers
of the service roles hosted by this process with the subscriber.
"""

from loguru import logger

from social_backend.constants import POST_CREATED, POST_DELETED, SERVICE_MEDIA, SERVICE_SEARCH
from social_backend.events.types import EventPayload, PostCreatedEvent, PostDeletedEvent
from social_backend.messaging import Subscriber, Subscription

__all__ = [
    "EventPayload",
    "PostCreatedEvent",
    "PostDeletedEvent",
    "register_event_handlers",
]


async def register_event_handlers(subscriber: Subscriber, services: set[str]) -> list[Subscription]:
    """Subscribe the handlers of the active service roles.

    The post role only publishes; the search role follows both post events
    and the media role cleans up after ``post.deleted``.

    Args:
        subscriber: Subscriber of this process
        services: Active service roles

    Returns:
        The subscriptions that were started
    """
    # Handler modules import the services, which import this package
    from social_backend.events.media_handlers import PostDeletedMediaHandler
    from social_backend.events.search_handlers import PostCreatedIndexHandler, PostDeletedIndexHandler

    logger.debug(f"Registering event handlers for services: {', '.join(sorted(services))}")
    subscriptions: list[Subscription] = []

    if SERVICE_SEARCH in services:
        subscriptions.append(await subscriber.subscribe(POST_CREATED, PostCreatedIndexHandler, model=PostCreatedEvent))
        subscriptions.append(await subscriber.subscribe(POST_DELETED, PostDeletedIndexHandler, model=PostDeletedEvent))

    if SERVICE_MEDIA in services:
        subscriptions.append(await subscriber.subscribe(POST_DELETED, PostDeletedMediaHandler, model=PostDeletedEvent))

    logger.info(f"Event handlers registered successfully ({len(subscriptions)} subscriptions)")
    return subscriptions
