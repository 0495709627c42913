"""Service registry for dependency injection.

The registry is the single place where process-wide collaborators live:
the broker connection manager, publisher, subscriber, cache coordinator,
stores and domain services. HTTP routes resolve services from it through
``api.dependencies.service`` and event handler classes get their
constructor arguments from it.
"""

from collections.abc import Callable
from functools import lru_cache
from typing import Any, TypeVar, cast

T = TypeVar("T")
ServiceFactory = Callable[[], T]


class ServiceRegistry:
    """Registry for all shared services with support for singletons and factories."""

    def __init__(self):
        """Initialize an empty service registry."""
        self._singletons: dict[type, Any] = {}
        self._factories: dict[type, ServiceFactory[Any]] = {}

    def register_singleton(self, service_type: type[T], instance: T) -> None:
        """Register a singleton instance by its type.

        Args:
            service_type: The type the instance is looked up by
            instance: The singleton instance to register
        """
        self._factories.pop(service_type, None)
        self._singletons[service_type] = instance

    def register_factory(self, service_type: type[T], factory: ServiceFactory[T]) -> None:
        """Register a factory function by its type.

        The factory is called on every lookup.

        Args:
            service_type: The type the factory produces
            factory: The factory function that creates instances of the service
        """
        self._singletons.pop(service_type, None)
        self._factories[service_type] = factory

    def get(self, service_type: type[T]) -> T:
        """Get a service instance by type.

        Args:
            service_type: The type of the service to retrieve

        Returns:
            An instance of the requested service

        Raises:
            KeyError: If the requested service is not registered
        """
        if service_type in self._singletons:
            return cast(T, self._singletons[service_type])
        if service_type in self._factories:
            return cast(T, self._factories[service_type]())
        raise KeyError(f"Service {service_type.__name__} not registered")

    def is_registered(self, service_type: type) -> bool:
        return service_type in self._singletons or service_type in self._factories

    def clear(self) -> None:
        """Forget every registration, e.g. between application lifespans."""
        self._singletons.clear()
        self._factories.clear()


@lru_cache
def get_service_registry() -> ServiceRegistry:
    """Get the singleton service registry instance.

    Returns:
        The global service registry instance
    """
    return ServiceRegistry()
