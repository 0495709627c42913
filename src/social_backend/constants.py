"""Global constants for the social backend.

This module defines constants used throughout the application to avoid
hardcoded strings and make the codebase more maintainable.
"""

# Service roles a process can host
SERVICE_POST = "post"
SERVICE_SEARCH = "search"
SERVICE_MEDIA = "media"
ALL_SERVICES = frozenset({SERVICE_POST, SERVICE_SEARCH, SERVICE_MEDIA})

# Routing keys published on the shared topic exchange
POST_CREATED = "post.created"
POST_DELETED = "post.deleted"

# Header set by the gateway once the caller has been authenticated
USER_ID_HEADER = "X-User-Id"
