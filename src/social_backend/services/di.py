"""Dependency injection setup module.

This module provides centralized service registration for both
FastAPI server and CLI applications.

Registration never replaces an existing entry, so callers (tests in
particular) can register their own ``ConnectionManager`` or
``CacheCoordinator`` first and let the rest of the graph be built on top.
"""

from collections.abc import Callable
from typing import Any

from loguru import logger

from social_backend.cache import CacheCoordinator
from social_backend.messaging import ConnectionManager, HandlerDispatcher, Publisher, Subscriber
from social_backend.roles import dead_letter_queue_name, parse_services
from social_backend.services.health_check_service import HealthCheckService
from social_backend.services.media_service import MediaService
from social_backend.services.post_service import PostService
from social_backend.services.registry import ServiceRegistry
from social_backend.services.repositories import (
    InMemoryMediaRepository,
    InMemoryPostRepository,
    InMemorySearchIndex,
    MediaRepository,
    PostRepository,
    SearchIndex,
)
from social_backend.services.search_service import SearchService
from social_backend.settings import Settings, get_settings


def _register_once(registry: ServiceRegistry, service_type: type, build: Callable[[], Any]) -> None:
    if registry.is_registered(service_type):
        logger.trace(f"{service_type.__name__} already registered, keeping it")
        return
    registry.register_singleton(service_type, build())


def register_core_services(registry: ServiceRegistry, settings: Settings | None = None) -> None:
    """Register infrastructure services in the service registry.

    Core services are the broker connection and its publisher and subscriber,
    the cache coordinator and the health check. They are process-wide
    singletons; creating them does not touch the network.

    Args:
        registry: Service registry instance to register services in
        settings: Settings to build the services from, the cached settings by default
    """
    settings = settings or get_settings()
    logger.debug("Registering core services in DI container")

    _register_once(registry, Settings, lambda: settings)
    _register_once(registry, ConnectionManager, lambda: ConnectionManager.from_settings(settings))
    _register_once(registry, CacheCoordinator, lambda: CacheCoordinator.from_settings(settings))

    manager = registry.get(ConnectionManager)
    _register_once(registry, Publisher, lambda: Publisher(manager))
    _register_once(
        registry,
        Subscriber,
        lambda: Subscriber(
            manager,
            dispatcher=HandlerDispatcher(registry),
            failure_policy=settings.handler_failure_policy,
            dead_letter_queue=dead_letter_queue_name(settings.exchange_name, parse_services(settings.services)),
            dead_letter_ttl=settings.dead_letter_ttl,
            dead_letter_max_length=settings.dead_letter_max_length,
        ),
    )
    _register_once(
        registry,
        HealthCheckService,
        lambda: HealthCheckService(manager, registry.get(CacheCoordinator), parse_services(settings.services)),
    )


def register_app_services(registry: ServiceRegistry, settings: Settings | None = None) -> None:
    """Register application-specific services in the service registry.

    Application services are the stores and the post, search and media
    services. Core services must be registered first.

    Args:
        registry: Service registry instance to register services in
        settings: Settings passed on to the services, the cached settings by default
    """
    settings = settings or get_settings()
    logger.debug("Registering application services in DI container")

    _register_once(registry, PostRepository, InMemoryPostRepository)
    _register_once(registry, SearchIndex, InMemorySearchIndex)
    _register_once(registry, MediaRepository, InMemoryMediaRepository)

    cache = registry.get(CacheCoordinator)
    _register_once(
        registry,
        PostService,
        lambda: PostService(registry.get(PostRepository), cache, registry.get(Publisher), settings),
    )
    _register_once(registry, SearchService, lambda: SearchService(registry.get(SearchIndex), cache, settings))
    _register_once(registry, MediaService, lambda: MediaService(registry.get(MediaRepository)))


def register_all_services(registry: ServiceRegistry, settings: Settings | None = None) -> None:
    """Register all services in the service registry.

    This is a convenience function that registers both core and application services.

    Args:
        registry: Service registry instance to register services in
        settings: Settings to build the services from, the cached settings by default
    """
    register_core_services(registry, settings)
    register_app_services(registry, settings)
