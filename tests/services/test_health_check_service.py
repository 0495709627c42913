"""Tests for the health check service."""

import pytest

from social_backend.services.health_check_service import CHECK_BROKER, CHECK_CACHE, HealthCheckService, ServerState


@pytest.fixture
def health_check_service(manager, cache) -> HealthCheckService:
    return HealthCheckService(manager, cache, {"post", "search"})


class TestHealthCheckService:
    @pytest.mark.asyncio
    async def test_not_connected_is_error(self, health_check_service, broker):
        result = await health_check_service.perform_health_check()

        assert result.server_state == ServerState.ERROR
        assert result.status == "error"
        assert broker.connect_attempts == 0

    @pytest.mark.asyncio
    async def test_connected_is_operational(self, health_check_service, manager):
        await manager.connect()

        result = await health_check_service.perform_health_check()

        assert result.server_state == ServerState.OPERATIONAL
        assert result.status == "ok"
        assert result.active_services == ["post", "search"]
        assert [c.check for c in result.checks] == [CHECK_BROKER, CHECK_CACHE]
        assert result.checks[0].details["exchange"] == "test_events"

    @pytest.mark.asyncio
    async def test_cache_outage_is_degraded(self, health_check_service, manager, fake_redis):
        await manager.connect()
        fake_redis.fail = True

        result = await health_check_service.perform_health_check()

        assert result.server_state == ServerState.DEGRADED
        cache_check = result.checks[1]
        assert cache_check.success is False
        assert cache_check.execution_time_ms >= 0
        assert cache_check.executed_at
