"""Read-through caching with precise write invalidation."""

from .coordinator import CacheCoordinator
from .keys import POST_LIST_PREFIX, POST_PREFIX, SEARCH_PREFIX, post_key, post_list_key, search_key

__all__ = [
    "CacheCoordinator",
    "POST_LIST_PREFIX",
    "POST_PREFIX",
    "SEARCH_PREFIX",
    "post_key",
    "post_list_key",
    "search_key",
]
