"""Create and delete a post with the post, search and media roles wired together.

Every role runs on its own connection manager against one shared in-memory
broker, the way separate processes share one RabbitMQ.
"""

import pytest
import pytest_asyncio
from fakes import FakeBroker, FakeRedis, RecordingSleep

from social_backend.cache import CacheCoordinator
from social_backend.events import register_event_handlers
from social_backend.messaging import ConnectionManager, Subscriber
from social_backend.models.api_model import MediaCreateInput, PostCreateInput
from social_backend.services.di import register_all_services
from social_backend.services.media_service import MediaService
from social_backend.services.post_service import PostService
from social_backend.services.registry import ServiceRegistry
from social_backend.services.search_service import SearchService
from social_backend.settings import Settings


async def start_role(broker: FakeBroker, redis: FakeRedis, services: str) -> ServiceRegistry:
    settings = Settings(_env_file=None, exchange_name="social_events", services=services)
    registry = ServiceRegistry()
    registry.register_singleton(
        ConnectionManager,
        ConnectionManager("amqp://fake/", "social_events", connect_factory=broker.connect, sleep=RecordingSleep()),
    )
    registry.register_singleton(CacheCoordinator, CacheCoordinator(redis))
    register_all_services(registry, settings)
    await registry.get(ConnectionManager).connect()
    await register_event_handlers(registry.get(Subscriber), {services})
    return registry


@pytest_asyncio.fixture
async def cluster():
    broker = FakeBroker()
    redis = FakeRedis()
    roles = {name: await start_role(broker, redis, name) for name in ["post", "search", "media"]}
    yield broker, redis, roles
    for registry in roles.values():
        await registry.get(Subscriber).close()
        await registry.get(ConnectionManager).close()


@pytest.mark.asyncio
async def test_create_and_delete_post_across_services(cluster):
    broker, redis, roles = cluster
    posts = roles["post"].get(PostService)
    search = roles["search"].get(SearchService)
    media = roles["media"].get(MediaService)

    picture = await media.register_media("alice", MediaCreateInput(public_id="cdn/1", original_name="1.png", mime_type="image/png", url="https://cdn/1"))
    post = await posts.create_post("alice", PostCreateInput(content="sunset over the lake", media_ids=[picture.id]))
    await broker.wait_idle()

    found = await search.search("sunset")
    assert [r.post_id for r in found.results] == [post.id]
    assert (await posts.get_post(post.id)).content == "sunset over the lake"
    assert "search:sunset" in redis.keys()

    await posts.delete_post(post.id, "alice")
    await broker.wait_idle()

    assert (await search.search("sunset")).results == []
    assert await media.list_media() == []
    assert not any(key.startswith("post:") or key.startswith("posts:") for key in redis.keys())
    assert broker.settled_with("rejected") == []


@pytest.mark.asyncio
async def test_duplicate_post_deleted_is_harmless(cluster):
    broker, _, roles = cluster
    posts = roles["post"].get(PostService)
    media = roles["media"].get(MediaService)

    picture = await media.register_media("bob", MediaCreateInput(public_id="cdn/2", original_name="2.png", mime_type="image/png", url="https://cdn/2"))
    post = await posts.create_post("bob", PostCreateInput(content="twice", media_ids=[picture.id]))
    await posts.delete_post(post.id, "bob")
    await broker.wait_idle()

    # Redeliver the same post.deleted event
    _, message = broker.published[-1]
    broker.exchanges["social_events"].route(message.body, "post.deleted", message.message_id)
    await broker.wait_idle()

    assert await media.list_media() == []
    assert broker.settled_with("rejected") == []
