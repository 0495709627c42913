"""Health check service module.

The health of a process is the health of its two shared dependencies: the
broker connection and the cache. Without the broker the process cannot do
its job and is in ``error``; without the cache reads and writes still work,
only slower, so the process is ``degraded``.
"""

from enum import StrEnum
from typing import Any

import arrow
from loguru import logger
from pydantic import BaseModel, Field

from social_backend.cache import CacheCoordinator
from social_backend.messaging import ConnectionManager

CHECK_BROKER = "broker_connection"
CHECK_CACHE = "cache_connection"


class ServerState(StrEnum):
    """Overall state derived from the individual checks."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    ERROR = "error"


class CheckResult(BaseModel):
    """Outcome of one dependency check."""

    check: str
    success: bool
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    executed_at: str = Field(default_factory=lambda: arrow.utcnow().isoformat())
    execution_time_ms: float = 0.0


class HealthCheckResult(BaseModel):
    """Pydantic model representing the full health check response."""

    model_config = {"use_enum_values": True}

    status: str
    server_state: ServerState
    active_services: list[str] = Field(default_factory=list)
    checks: list[CheckResult] = Field(default_factory=list)


class HealthCheckService:
    """Service for performing health checks on the application."""

    def __init__(self, connection_manager: ConnectionManager, cache: CacheCoordinator, services: set[str]):
        self.connection_manager = connection_manager
        self.cache = cache
        self.services = services

    async def perform_health_check(self) -> HealthCheckResult:
        """Check the broker connection and the cache.

        Returns:
            The health check result; ``status`` is ``ok`` only when every check passed.
        """
        logger.debug("Running health checks")
        broker = self.check_broker()
        cache = await self.check_cache()

        if not broker.success:
            server_state = ServerState.ERROR
        elif not cache.success:
            server_state = ServerState.DEGRADED
        else:
            server_state = ServerState.OPERATIONAL

        return HealthCheckResult(
            status="ok" if server_state is ServerState.OPERATIONAL else "error",
            server_state=server_state,
            active_services=sorted(self.services),
            checks=[broker, cache],
        )

    def check_broker(self) -> CheckResult:
        """Report the broker connection state; this never opens a connection."""
        state = self.connection_manager.state
        details = {
            "state": str(state),
            "exchange": self.connection_manager.exchange_name,
            "durable": self.connection_manager.exchange_durable,
        }
        if self.connection_manager.is_connected:
            return CheckResult(check=CHECK_BROKER, success=True, message="Broker connection is healthy", details=details)
        return CheckResult(check=CHECK_BROKER, success=False, message=f"Broker connection is {state}", details=details)

    async def check_cache(self) -> CheckResult:
        start_time = arrow.utcnow().float_timestamp
        reachable = await self.cache.ping()
        elapsed_ms = (arrow.utcnow().float_timestamp - start_time) * 1000

        if reachable:
            return CheckResult(check=CHECK_CACHE, success=True, message="Cache is reachable", execution_time_ms=elapsed_ms)
        return CheckResult(
            check=CHECK_CACHE,
            success=False,
            message="Cache is unreachable, serving from the stores",
            execution_time_ms=elapsed_ms,
        )
