"""Service for media metadata.

Uploading the binary to object storage happens before the media service is
called; this service only keeps the metadata and forgets it again when the
post the media belongs to is deleted.
"""

from uuid import uuid4

from loguru import logger

from social_backend.models.api_model import MediaCreateInput, MediaResponse
from social_backend.models.db_model import Media
from social_backend.services.repositories import MediaRepository


class MediaService:
    """Service for media operations."""

    def __init__(self, repository: MediaRepository):
        self.repository = repository

    async def register_media(self, user_id: str, data: MediaCreateInput) -> MediaResponse:
        media = Media(id=uuid4().hex, user_id=user_id, **data.model_dump())
        await self.repository.add(media)
        logger.info(f"Service: register_media - media {media.id} ({data.mime_type}) registered for user {user_id}")
        return MediaResponse.model_validate(media.model_dump())

    async def list_media(self) -> list[MediaResponse]:
        return [MediaResponse.model_validate(media.model_dump()) for media in await self.repository.list_all()]

    async def delete_media(self, media_ids: list[str]) -> list[str]:
        """Delete media records by id.

        Ids that are already gone are skipped, so deleting the same ids twice
        leaves the store in the same state as deleting them once.

        Returns:
            The ids that were actually deleted
        """
        if not media_ids:
            return []

        deleted = await self.repository.delete_many(media_ids)
        skipped = len(media_ids) - len(deleted)
        logger.info(f"Service: delete_media - deleted {len(deleted)} media, skipped {skipped} unknown")
        return deleted
