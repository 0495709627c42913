"""API dependencies for FastAPI endpoints."""

from collections.abc import Callable
from typing import Annotated, TypeVar

from fastapi import Header, HTTPException, status

from social_backend.constants import USER_ID_HEADER
from social_backend.services.registry import get_service_registry

T = TypeVar("T")


def service[T](service_type: type[T]) -> Callable[[], T]:
    """FastAPI dependency that provides a service by type.

    Args:
        service_type: The type of service to retrieve from the registry

    Returns:
        A callable that returns the requested service instance

    Example:
        ```python
        @router.get("/endpoint")
        def endpoint(service: MyService = Depends(service(MyService))):
            return service.do_something()
        ```
    """

    def get_service() -> T:
        registry = get_service_registry()
        return registry.get(service_type)

    return get_service


def current_user_id(user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None) -> str:
    """The acting user, as authenticated by the gateway.

    Raises:
        HTTPException: 401 if the gateway did not supply a user
    """
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user_id.strip()
