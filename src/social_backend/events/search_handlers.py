"""Search index handlers.

The search service keeps its index in step with the post store by
listening to ``post.created`` and ``post.deleted``.
"""

from loguru import logger

from social_backend.events.types import PostCreatedEvent, PostDeletedEvent
from social_backend.messaging.core import EventHandler
from social_backend.services.search_service import SearchService


class PostCreatedIndexHandler(EventHandler[PostCreatedEvent]):
    """Adds a newly created post to the search index."""

    def __init__(self, search_service: SearchService):
        self.search_service = search_service

    async def handle(self, event: PostCreatedEvent) -> None:
        logger.debug(f"Indexing post {event.post_id} of user {event.user_id}")
        await self.search_service.index_post(event)


class PostDeletedIndexHandler(EventHandler[PostDeletedEvent]):
    """Removes a deleted post from the search index.

    A post that is not in the index is not an error, which makes a repeated
    delivery harmless.
    """

    def __init__(self, search_service: SearchService):
        self.search_service = search_service

    async def handle(self, event: PostDeletedEvent) -> bool:
        return await self.search_service.remove_post(event)
