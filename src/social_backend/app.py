"""Main FastAPI application module."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from social_backend import __version__
from social_backend.api.api_router import create_api_router
from social_backend.api.health_check import router as health_router
from social_backend.api.ping import router as ping_router
from social_backend.cache import CacheCoordinator
from social_backend.constants import SERVICE_MEDIA, SERVICE_POST, SERVICE_SEARCH
from social_backend.events import register_event_handlers
from social_backend.exception_handlers import register_exception_handlers
from social_backend.logging import setup_logging
from social_backend.messaging import ConnectionManager, Subscriber
from social_backend.roles import parse_services
from social_backend.services.di import register_all_services
from social_backend.services.health_check_service import HealthCheckResult, HealthCheckService, ServerState
from social_backend.services.registry import ServiceRegistry, get_service_registry
from social_backend.settings import Settings, get_settings


def _log_startup_check_results(health_result: HealthCheckResult) -> None:
    """Log a concise summary of startup check results.

    Raises:
        SystemExit: If the server state is ``error``
    """
    for check in health_result.checks:
        log = logger.info if check.success else logger.warning
        log(f"   {check.check}: {check.message}")

    if health_result.server_state == ServerState.ERROR:
        logger.error("Startup checks failed - broker is not available")
        logger.error(f"Server state: {health_result.server_state}")
        raise SystemExit(1)
    elif health_result.server_state == ServerState.DEGRADED:
        logger.warning("Server starting in degraded state - cache unavailable, reads go to the stores")
        logger.info(f"Server state: {health_result.server_state}")
    else:  # OPERATIONAL
        logger.info("All startup checks passed successfully")
        logger.info(f"Server state: {health_result.server_state}")


def _log_server_endpoints_summary(settings: Settings, active_services: set[str]) -> None:
    """Log a summary of server URL and available endpoints.

    Args:
        settings: Application settings containing host and port
        active_services: Set of active service roles
    """
    server_url = f"http://{settings.host}:{settings.port}"
    logger.info(f"Server running at: {server_url}")

    # System endpoints - always available
    endpoints = [
        ("Health Check", "/health-check"),
        ("Ping", "/ping"),
        ("API Docs", "/docs"),
    ]

    if SERVICE_POST in active_services:
        endpoints.append(("Posts", "/api/posts"))
    if SERVICE_SEARCH in active_services:
        endpoints.append(("Search", "/api/search"))
    if SERVICE_MEDIA in active_services:
        endpoints.append(("Media", "/api/media"))

    logger.info("Available endpoints:")
    for name, path in endpoints:
        logger.info(f"   {name}: {server_url}{path}")

    logger.info(f"Active services: {', '.join(sorted(active_services))}")


async def perform_startup_checks(app_settings: Settings, registry: ServiceRegistry | None = None) -> HealthCheckResult:
    """Connect to the broker and check the cache without starting the server.

    This function contains the same logic that runs during server startup,
    but can be called independently for check-only mode.

    Args:
        app_settings: Application settings
        registry: Service registry, the process-wide one by default

    Returns:
        The health check result

    Raises:
        SystemExit: If the broker cannot be reached within the retry policy
    """
    registry = registry or get_service_registry()

    logger.info("Registering services in the service registry")
    register_all_services(registry, app_settings)

    logger.info(f"Performing startup checks (services: {', '.join(sorted(parse_services(app_settings.services)))})")

    # Exits the process once the retry policy is exhausted
    await registry.get(ConnectionManager).connect()

    health_result = await registry.get(HealthCheckService).perform_health_check()
    _log_startup_check_results(health_result)
    return health_result


async def shutdown_services(registry: ServiceRegistry) -> None:
    """Stop consuming, then close the broker connection and the cache client."""
    if registry.is_registered(Subscriber):
        await registry.get(Subscriber).close()
    if registry.is_registered(ConnectionManager):
        await registry.get(ConnectionManager).close()
    if registry.is_registered(CacheCoordinator):
        await registry.get(CacheCoordinator).close()


@asynccontextmanager
async def app_lifespan(_app: FastAPI):
    """Handle startup and shutdown events for the main application."""
    settings: Settings = _app.state.settings
    active_services: set[str] = _app.state.active_services

    setup_logging(log_level=settings.log_level)

    registry = get_service_registry()
    await perform_startup_checks(settings, registry)
    await register_event_handlers(registry.get(Subscriber), active_services)

    _log_server_endpoints_summary(settings, active_services)

    yield

    logger.info("Social backend shutting down")
    await shutdown_services(registry)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application for the service roles configured in ``settings``.

    Args:
        settings: Application settings, the cached settings by default

    Returns:
        The application; connecting and subscribing happen in its lifespan
    """
    settings = settings or get_settings()
    active_services = parse_services(settings.services)

    fastapi_app = FastAPI(
        lifespan=app_lifespan,
        title="Social backend",
        description="Post, search and media services sharing a topic exchange and a read-through cache",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    fastapi_app.state.settings = settings
    fastapi_app.state.active_services = active_services

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(fastapi_app)

    # System endpoints - always enabled
    fastapi_app.include_router(health_router, prefix="")
    fastapi_app.include_router(ping_router, prefix="")

    fastapi_app.include_router(create_api_router(active_services), prefix="/api")
    return fastapi_app


app = create_app()
