"""Service for post-related operations.

Every mutation follows the same order: commit to the post store, invalidate
the affected cache keys, then publish the domain event. The store is
authoritative: when publishing fails the write is kept and the failure is
only logged, leaving dependent services behind until the post changes again.
"""

import math
from datetime import UTC, datetime
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel

from social_backend.cache import POST_LIST_PREFIX, CacheCoordinator, post_key, post_list_key
from social_backend.constants import POST_CREATED, POST_DELETED
from social_backend.events.types import PostCreatedEvent, PostDeletedEvent
from social_backend.exceptions import ResourceNotFoundError
from social_backend.messaging import Publisher, PublishError
from social_backend.models.api_model import PostCreateInput, PostPage, PostResponse
from social_backend.models.db_model import Post
from social_backend.services.repositories import PostRepository
from social_backend.settings import Settings, get_settings


class PostService:
    """Service for post operations."""

    def __init__(
        self,
        repository: PostRepository,
        cache: CacheCoordinator,
        publisher: Publisher,
        settings: Settings | None = None,
    ):
        self.repository = repository
        self.cache = cache
        self.publisher = publisher
        self.settings = settings or get_settings()

    async def create_post(self, user_id: str, data: PostCreateInput) -> PostResponse:
        """Create a post and announce it on ``post.created``.

        Args:
            user_id: Author of the post
            data: Post content and attached media ids

        Returns:
            The stored post
        """
        post = Post(
            id=uuid4().hex,
            user_id=user_id,
            content=data.content,
            media_ids=data.media_ids,
            created_at=datetime.now(UTC),
        )
        await self.repository.add(post)
        await self.invalidate_post(post.id)

        await self._publish(
            POST_CREATED,
            PostCreatedEvent(post_id=post.id, user_id=post.user_id, content=post.content, created_at=post.created_at),
        )
        logger.info(f"Service: create_post - post {post.id} created by user {user_id}")
        return PostResponse.model_validate(post.model_dump())

    async def get_post(self, post_id: str) -> PostResponse:
        """Get a post by ID, served from the cache when possible.

        Raises:
            ResourceNotFoundError: If the post does not exist
        """

        async def load() -> dict | None:
            post = await self.repository.get(post_id)
            return post.to_json_dict() if post is not None else None

        data = await self.cache.get_or_compute(post_key(post_id), self.settings.post_cache_ttl, load)
        if data is None:
            raise ResourceNotFoundError("Post", post_id)
        return PostResponse.model_validate(data)

    async def list_posts(self, page: int = 1, limit: int = 10) -> PostPage:
        """Get one page of posts, newest first, served from the cache when possible."""
        page = max(page, 1)
        limit = max(limit, 1)

        async def load() -> dict:
            posts = await self.repository.list_newest((page - 1) * limit, limit)
            total = await self.repository.count()
            return PostPage(
                posts=[PostResponse.model_validate(post.model_dump()) for post in posts],
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_posts=total,
            ).to_json_dict()

        data = await self.cache.get_or_compute(post_list_key(page, limit), self.settings.post_list_cache_ttl, load)
        return PostPage.model_validate(data)

    async def delete_post(self, post_id: str, user_id: str) -> None:
        """Delete a post owned by ``user_id`` and announce it on ``post.deleted``.

        Raises:
            ResourceNotFoundError: If no post with this ID is owned by the user
        """
        post = await self.repository.delete_owned(post_id, user_id)
        if post is None:
            logger.warning(f"Service: delete_post - post {post_id} not found for user {user_id}")
            raise ResourceNotFoundError("Post", post_id)

        await self.invalidate_post(post.id)
        await self._publish(POST_DELETED, PostDeletedEvent(post_id=post.id, user_id=user_id, media_ids=post.media_ids))
        logger.info(f"Service: delete_post - post {post_id} deleted by user {user_id}")

    async def invalidate_post(self, post_id: str) -> None:
        """Drop the post's detail entry and every cached page of the post list."""
        await self.cache.invalidate_entity(post_key(post_id), POST_LIST_PREFIX)

    async def _publish(self, routing_key: str, event: BaseModel) -> None:
        try:
            await self.publisher.publish(routing_key, event)
        except PublishError as e:
            logger.error(f"Service: {routing_key} not delivered, keeping local write: {e}")
