"""Cache key derivation.

Keys are deterministic functions of the query parameters. Detail entries
and collection (list/search) entries use distinct prefixes so that a write
can drop every page of a collection without touching unrelated details:
``posts:`` never matches ``post:42``.
"""

POST_PREFIX = "post:"
POST_LIST_PREFIX = "posts:"
SEARCH_PREFIX = "search:"


def post_key(post_id: str) -> str:
    return f"{POST_PREFIX}{post_id}"


def post_list_key(page: int, limit: int) -> str:
    return f"{POST_LIST_PREFIX}{page}:{limit}"


def search_key(query: str) -> str:
    """Search results are shared between queries differing only in case and whitespace."""
    return f"{SEARCH_PREFIX}{' '.join(query.lower().split())}"
