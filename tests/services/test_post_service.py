"""Tests for the post service: store, invalidate, publish."""

import json

import pytest

from social_backend.exceptions import ResourceNotFoundError
from social_backend.models.api_model import PostCreateInput
from social_backend.services.post_service import PostService
from social_backend.services.repositories import InMemoryPostRepository


@pytest.fixture
def repository() -> InMemoryPostRepository:
    return InMemoryPostRepository()


@pytest.fixture
def post_service(repository, cache, publisher, settings) -> PostService:
    return PostService(repository, cache, publisher, settings)


class TestCreatePost:
    @pytest.mark.asyncio
    async def test_create_stores_and_publishes(self, post_service, repository, broker):
        post = await post_service.create_post("user-1", PostCreateInput(content="hello world", media_ids=["m1"]))

        assert await repository.get(post.id) is not None
        routing_key, message = broker.published[0]
        assert routing_key == "post.created"
        body = json.loads(message.body)
        assert body["postId"] == post.id
        assert body["userId"] == "user-1"
        assert body["content"] == "hello world"
        assert "createdAt" in body

    @pytest.mark.asyncio
    async def test_create_drops_cached_list_pages(self, post_service, fake_redis):
        await post_service.create_post("user-1", PostCreateInput(content="first"))
        await post_service.list_posts(1, 10)
        assert "posts:1:10" in fake_redis.keys()

        await post_service.create_post("user-1", PostCreateInput(content="second"))

        assert "posts:1:10" not in fake_redis.keys()
        page = await post_service.list_posts(1, 10)
        assert [p.content for p in page.posts] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_the_post(self, post_service, repository, broker):
        broker.fail_publish = True

        post = await post_service.create_post("user-1", PostCreateInput(content="still here"))

        assert await repository.get(post.id) is not None
        assert broker.published == []


class TestReadPosts:
    @pytest.mark.asyncio
    async def test_get_post_is_cached(self, post_service, fake_redis):
        created = await post_service.create_post("user-1", PostCreateInput(content="cached"))

        first = await post_service.get_post(created.id)
        second = await post_service.get_post(created.id)

        assert first == second == created
        assert f"post:{created.id}" in fake_redis.keys()

    @pytest.mark.asyncio
    async def test_post_entry_expires(self, post_service, fake_redis, settings):
        created = await post_service.create_post("user-1", PostCreateInput(content="ttl"))
        await post_service.get_post(created.id)

        fake_redis.advance(settings.post_cache_ttl)

        assert f"post:{created.id}" not in fake_redis.keys()

    @pytest.mark.asyncio
    async def test_missing_post_raises(self, post_service, fake_redis):
        with pytest.raises(ResourceNotFoundError):
            await post_service.get_post("nope")
        assert "post:nope" not in fake_redis.keys()

    @pytest.mark.asyncio
    async def test_list_posts_pagination(self, post_service):
        for i in range(5):
            await post_service.create_post("user-1", PostCreateInput(content=f"post {i}"))

        page = await post_service.list_posts(page=2, limit=2)

        assert page.current_page == 2
        assert page.total_pages == 3
        assert page.total_posts == 5
        assert [p.content for p in page.posts] == ["post 2", "post 1"]

    @pytest.mark.asyncio
    async def test_list_posts_reads_the_store_when_redis_is_down(self, post_service, fake_redis):
        await post_service.create_post("user-1", PostCreateInput(content="resilient"))
        fake_redis.fail = True

        page = await post_service.list_posts()

        assert page.total_posts == 1


class TestDeletePost:
    @pytest.mark.asyncio
    async def test_delete_invalidates_and_publishes_media_ids(self, post_service, broker, fake_redis):
        created = await post_service.create_post("user-1", PostCreateInput(content="bye", media_ids=["m1", "m2"]))
        await post_service.get_post(created.id)
        await post_service.list_posts()

        await post_service.delete_post(created.id, "user-1")

        assert f"post:{created.id}" not in fake_redis.keys()
        assert not any(key.startswith("posts:") for key in fake_redis.keys())
        routing_key, message = broker.published[-1]
        assert routing_key == "post.deleted"
        assert json.loads(message.body) == {"postId": created.id, "userId": "user-1", "mediaIds": ["m1", "m2"]}
        with pytest.raises(ResourceNotFoundError):
            await post_service.get_post(created.id)

    @pytest.mark.asyncio
    async def test_only_the_owner_can_delete(self, post_service, repository, broker):
        created = await post_service.create_post("user-1", PostCreateInput(content="mine"))

        with pytest.raises(ResourceNotFoundError):
            await post_service.delete_post(created.id, "user-2")

        assert await repository.get(created.id) is not None
        assert [key for key, _ in broker.published] == ["post.created"]

    @pytest.mark.asyncio
    async def test_other_posts_stay_cached(self, post_service, fake_redis):
        keep = await post_service.create_post("user-1", PostCreateInput(content="keep"))
        drop = await post_service.create_post("user-1", PostCreateInput(content="drop"))
        await post_service.get_post(keep.id)
        await post_service.get_post(drop.id)

        await post_service.delete_post(drop.id, "user-1")

        assert f"post:{keep.id}" in fake_redis.keys()
