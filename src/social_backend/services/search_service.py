"""Service for search operations.

The search index is a projection of the post store maintained entirely from
``post.created`` and ``post.deleted`` events.
"""

from loguru import logger

from social_backend.cache import SEARCH_PREFIX, CacheCoordinator, search_key
from social_backend.events.types import PostCreatedEvent, PostDeletedEvent
from social_backend.models.api_model import SearchResult, SearchResults
from social_backend.models.db_model import SearchDocument
from social_backend.services.repositories import SearchIndex
from social_backend.settings import Settings, get_settings

MAX_RESULTS = 10


class SearchService:
    """Service for post search."""

    def __init__(self, index: SearchIndex, cache: CacheCoordinator, settings: Settings | None = None):
        self.index = index
        self.cache = cache
        self.settings = settings or get_settings()

    async def search(self, query: str) -> SearchResults:
        """Return the best matching posts for ``query``."""

        async def load() -> dict:
            hits = await self.index.search(query, MAX_RESULTS)
            results = [SearchResult(score=score, **document.model_dump()) for document, score in hits]
            return SearchResults(results=results).to_json_dict()

        data = await self.cache.get_or_compute(search_key(query), self.settings.search_cache_ttl, load)
        return SearchResults.model_validate(data)

    async def index_post(self, event: PostCreatedEvent) -> None:
        document = SearchDocument(
            post_id=event.post_id,
            user_id=event.user_id,
            content=event.content,
            created_at=event.created_at,
        )
        await self.index.upsert(document)
        await self.cache.invalidate_by_prefix(SEARCH_PREFIX)
        logger.info(f"Service: index_post - indexed post {event.post_id}")

    async def remove_post(self, event: PostDeletedEvent) -> bool:
        """Remove a post from the index; returns False when it was not indexed."""
        removed = await self.index.remove(event.post_id)
        await self.cache.invalidate_by_prefix(SEARCH_PREFIX)
        if removed:
            logger.info(f"Service: remove_post - removed post {event.post_id} from the index")
        else:
            logger.debug(f"Service: remove_post - post {event.post_id} was not indexed")
        return removed
