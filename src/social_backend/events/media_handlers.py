"""Media cleanup handler."""

from loguru import logger

from social_backend.events.types import PostDeletedEvent
from social_backend.messaging.core import EventHandler
from social_backend.services.media_service import MediaService


class PostDeletedMediaHandler(EventHandler[PostDeletedEvent]):
    """Deletes every media record attached to a deleted post.

    Ids that are already gone are skipped, so a duplicate ``post.deleted``
    delivery ends in the same state as a single one.
    """

    def __init__(self, media_service: MediaService):
        self.media_service = media_service

    async def handle(self, event: PostDeletedEvent) -> list[str]:
        if not event.media_ids:
            logger.debug(f"Post {event.post_id} had no media attached")
            return []

        return await self.media_service.delete_media(event.media_ids)
