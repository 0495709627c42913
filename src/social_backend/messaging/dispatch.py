"""Handler resolution and invocation.

Subscriptions accept three kinds of handlers:

- a plain (async or sync) function taking the decoded event,
- a function taking the event plus extra parameters whose type annotations
  name services registered in the ``ServiceRegistry``,
- an ``EventHandler`` subclass (or any class with a ``handle`` method) whose
  constructor dependencies are resolved from the ``ServiceRegistry``.

Resolution happens once, when the subscription is registered; invocation
happens per delivery and never raises: the outcome is reported as a
``HandlerOutcome`` so the subscriber can settle the message.
"""

import functools
import inspect
from collections.abc import Callable
from typing import Any

from loguru import logger

from social_backend.services.registry import ServiceRegistry, get_service_registry

from .core import HandlerOutcome, HandlerRegistrationError

T_Handler = Callable[..., Any]


class HandlerDispatcher:
    """Turns registered handlers into callables and runs them safely."""

    def __init__(self, registry: ServiceRegistry | None = None) -> None:
        self._registry = registry

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry if self._registry is not None else get_service_registry()

    def resolve(self, handler: T_Handler) -> Callable[[Any], Any]:
        """Return a one-argument callable for the given handler.

        Raises:
            HandlerRegistrationError: If the handler is not callable, a handler
                class has no ``handle`` method, or a dependency cannot be resolved.
        """
        if inspect.isclass(handler):
            instance = self._instantiate_handler_class(handler)
            handle = getattr(instance, "handle", None)
            if handle is None:
                raise HandlerRegistrationError(f"Handler class {handler.__name__} must have a 'handle' method")
            return handle

        if not callable(handler):
            raise HandlerRegistrationError(f"Handler must be callable: {handler}")

        parameters = list(inspect.signature(handler).parameters.values())
        if len(parameters) <= 1:
            return handler

        # Skip the first parameter (event)
        kwargs = self._resolve_dependencies(parameters[1:], owner=handler)
        return functools.partial(handler, **kwargs)

    async def dispatch(self, handler: Callable[[Any], Any], event: Any) -> HandlerOutcome:
        """Invoke a resolved handler and report the outcome."""
        try:
            logger.trace(f"Executing handler {handler}")
            result = handler(event)
            if inspect.isawaitable(result):
                result = await result
            logger.trace(f"Handler {handler} completed successfully")
            return HandlerOutcome.success(result)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Handler {handler} failed: {type(e).__name__}: {e}")
            return HandlerOutcome.failure(e)

    def _instantiate_handler_class(self, handler_class: type) -> Any:
        parameters = list(inspect.signature(handler_class.__init__).parameters.values())[1:]  # Skip 'self'
        parameters = [p for p in parameters if p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)]
        if not parameters:
            return handler_class()

        kwargs = self._resolve_dependencies(parameters, owner=handler_class)
        return handler_class(**kwargs)

    def _resolve_dependencies(self, parameters: list[inspect.Parameter], owner: Any) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        for param in parameters:
            if param.annotation is inspect.Parameter.empty or not isinstance(param.annotation, type):
                if param.default is inspect.Parameter.empty:
                    raise HandlerRegistrationError(f"Cannot inject untyped parameter '{param.name}' of {owner}")
                continue

            try:
                kwargs[param.name] = self.registry.get(param.annotation)
                logger.trace(f"Injected service '{param.annotation.__name__}' into {owner}")
            except KeyError as e:
                if param.default is inspect.Parameter.empty:
                    raise HandlerRegistrationError(f"Service '{param.annotation.__name__}' required by {owner} is not registered") from e
                logger.trace(f"Service '{param.annotation.__name__}' not registered, using default for {owner}")
        return kwargs
