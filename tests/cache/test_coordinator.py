"""Tests for the read-through cache and its invalidation."""

from datetime import UTC, datetime

import pytest
from fakes import FakeRedis

from social_backend.cache import CacheCoordinator, post_key, post_list_key, search_key


class ComputeCounter:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


class TestReadThrough:
    @pytest.mark.asyncio
    async def test_computes_once_within_ttl(self, cache, fake_redis):
        compute = ComputeCounter({"id": "1", "content": "hello"})

        first = await cache.get_or_compute("post:1", 60, compute)
        fake_redis.advance(59)
        second = await cache.get_or_compute("post:1", 60, compute)

        assert first == second == {"id": "1", "content": "hello"}
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_recomputes_after_expiry(self, cache, fake_redis):
        compute = ComputeCounter([1, 2, 3])

        await cache.get_or_compute("posts:1:10", 300, compute)
        fake_redis.advance(300)
        await cache.get_or_compute("posts:1:10", 300, compute)

        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, cache, fake_redis):
        compute = ComputeCounter(None)

        assert await cache.get_or_compute("post:missing", 60, compute) is None
        assert await cache.get_or_compute("post:missing", 60, compute) is None

        assert compute.calls == 2
        assert "post:missing" not in fake_redis.keys()

    @pytest.mark.asyncio
    async def test_miss_and_hit_return_the_same_shape(self, cache):
        compute = ComputeCounter({"createdAt": datetime(2024, 1, 1, tzinfo=UTC)})

        miss = await cache.get_or_compute("post:1", 60, compute)
        hit = await cache.get_or_compute("post:1", 60, compute)

        assert miss == hit
        assert isinstance(miss["createdAt"], str)

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_discarded(self, cache, fake_redis):
        await fake_redis.set("post:1", "{not json", ex=60)
        compute = ComputeCounter({"id": "1"})

        assert await cache.get_or_compute("post:1", 60, compute) == {"id": "1"}
        assert compute.calls == 1


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_entity_invalidation_is_precise(self, cache, fake_redis):
        for key in ["post:42", "post:99", "posts:1:10", "posts:2:10", "posts:1:20", "search:hello"]:
            await fake_redis.set(key, "{}", ex=300)

        removed = await cache.invalidate_entity(post_key("42"), "posts:")

        assert removed == 4
        assert fake_redis.keys() == {"post:99", "search:hello"}

    @pytest.mark.asyncio
    async def test_prefix_is_matched_literally(self, cache, fake_redis):
        await fake_redis.set("search:a*b", "{}", ex=60)
        await fake_redis.set("search:a-b", "{}", ex=60)

        await cache.invalidate_by_prefix("search:a*")

        assert fake_redis.keys() == {"search:a-b"}

    @pytest.mark.asyncio
    async def test_prefix_invalidation_in_batches(self, fake_redis):
        cache = CacheCoordinator(fake_redis, scan_batch_size=3)
        for page in range(1, 11):
            await fake_redis.set(post_list_key(page, 10), "{}", ex=300)

        assert await cache.invalidate_by_prefix("posts:") == 10
        assert fake_redis.keys() == set()

    @pytest.mark.asyncio
    async def test_empty_prefix_is_refused(self, cache):
        with pytest.raises(ValueError):
            await cache.invalidate_by_prefix("")

    @pytest.mark.asyncio
    async def test_invalidate_without_keys(self, cache):
        assert await cache.invalidate() == 0


class TestDegradation:
    """Redis failures never fail the caller."""

    @pytest.mark.asyncio
    async def test_read_failure_falls_back_to_compute(self, cache, fake_redis):
        fake_redis.fail = True
        compute = ComputeCounter({"id": "1"})

        assert await cache.get_or_compute("post:1", 60, compute) == {"id": "1"}
        assert await cache.get_or_compute("post:1", 60, compute) == {"id": "1"}
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_invalidation_failure_is_swallowed(self, cache, fake_redis):
        fake_redis.fail = True

        assert await cache.invalidate("post:1") == 0
        assert await cache.invalidate_by_prefix("posts:") == 0

    @pytest.mark.asyncio
    async def test_ping(self, cache, fake_redis):
        assert await cache.ping() is True
        fake_redis.fail = True
        assert await cache.ping() is False

    @pytest.mark.asyncio
    async def test_close(self):
        redis = FakeRedis()
        await CacheCoordinator(redis).close()
        assert redis.closed


class TestKeys:
    def test_post_keys_do_not_collide_with_list_prefix(self):
        assert post_key("42") == "post:42"
        assert not post_key("42").startswith("posts:")
        assert post_list_key(2, 20) == "posts:2:20"

    def test_search_key_normalizes_query(self):
        assert search_key("  Hello   World ") == search_key("hello world") == "search:hello world"
