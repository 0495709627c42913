"""Service role configuration and parsing.

A process hosts one or more service roles (post, search, media). The roles
decide which HTTP routes are mounted and which events are subscribed to.
"""

from social_backend.constants import ALL_SERVICES


def parse_services(config: str | None) -> set[str]:
    """Parse the service role configuration.

    Args:
        config: Comma-separated role names (case-insensitive), None, or empty string.
               None or empty string enables all roles.

    Returns:
        Set of enabled roles in lowercase

    Raises:
        ValueError: If an unknown role is provided

    Examples:
        >>> sorted(parse_services(None))
        ['media', 'post', 'search']
        >>> parse_services("Search")
        {'search'}
    """
    if not config or not config.strip():
        return set(ALL_SERVICES)

    services = {s.strip().lower() for s in config.split(",") if s.strip()}

    invalid = services - ALL_SERVICES
    if invalid:
        raise ValueError(f"Invalid service roles: {invalid}. Valid: {', '.join(sorted(ALL_SERVICES))}")

    return services


def dead_letter_queue_name(exchange_name: str, services: set[str]) -> str:
    """Durable dead-letter queue of a process, one per combination of hosted roles."""
    return f"{exchange_name}.dead_letter.{'-'.join(sorted(services))}"


__all__ = ["dead_letter_queue_name", "parse_services"]
