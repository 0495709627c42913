"""Store interfaces of the post, search and media services.

Each service owns its store; the services only depend on the protocols
below. The in-memory implementations back local runs and tests; a
deployment plugs in its own database-backed implementation through the
service registry.
"""

import re
from typing import Protocol

from social_backend.models.db_model import Media, Post, SearchDocument

_WORD = re.compile(r"\w+")


class PostRepository(Protocol):
    async def add(self, post: Post) -> None: ...

    async def get(self, post_id: str) -> Post | None: ...

    async def delete_owned(self, post_id: str, user_id: str) -> Post | None: ...

    async def list_newest(self, offset: int, limit: int) -> list[Post]: ...

    async def count(self) -> int: ...


class SearchIndex(Protocol):
    async def upsert(self, document: SearchDocument) -> None: ...

    async def remove(self, post_id: str) -> bool: ...

    async def search(self, query: str, limit: int) -> list[tuple[SearchDocument, float]]: ...

    async def get(self, post_id: str) -> SearchDocument | None: ...


class MediaRepository(Protocol):
    async def add(self, media: Media) -> None: ...

    async def get(self, media_id: str) -> Media | None: ...

    async def delete_many(self, media_ids: list[str]) -> list[str]: ...

    async def list_all(self) -> list[Media]: ...


class InMemoryPostRepository:
    """Dict-backed ``PostRepository``."""

    def __init__(self) -> None:
        self._posts: dict[str, Post] = {}

    async def add(self, post: Post) -> None:
        self._posts[post.id] = post

    async def get(self, post_id: str) -> Post | None:
        return self._posts.get(post_id)

    async def delete_owned(self, post_id: str, user_id: str) -> Post | None:
        """Delete a post only if ``user_id`` owns it; return the deleted post."""
        post = self._posts.get(post_id)
        if post is None or post.user_id != user_id:
            return None
        return self._posts.pop(post_id)

    async def list_newest(self, offset: int, limit: int) -> list[Post]:
        # Later inserts first on equal timestamps
        posts = sorted(reversed(self._posts.values()), key=lambda p: p.created_at, reverse=True)
        return posts[offset : offset + limit]

    async def count(self) -> int:
        return len(self._posts)


class InMemorySearchIndex:
    """Term-frequency ``SearchIndex`` over post content."""

    def __init__(self) -> None:
        self._documents: dict[str, SearchDocument] = {}

    async def upsert(self, document: SearchDocument) -> None:
        self._documents[document.post_id] = document

    async def remove(self, post_id: str) -> bool:
        return self._documents.pop(post_id, None) is not None

    async def get(self, post_id: str) -> SearchDocument | None:
        return self._documents.get(post_id)

    async def search(self, query: str, limit: int) -> list[tuple[SearchDocument, float]]:
        """Rank documents by how often the query terms occur, newest first on ties."""
        terms = {term.lower() for term in _WORD.findall(query)}
        if not terms:
            return []

        scored = []
        for document in reversed(self._documents.values()):
            words = [word.lower() for word in _WORD.findall(document.content)]
            score = float(sum(1 for word in words if word in terms))
            if score > 0:
                scored.append((document, score))

        scored.sort(key=lambda item: (item[1], item[0].created_at), reverse=True)
        return scored[:limit]


class InMemoryMediaRepository:
    """Dict-backed ``MediaRepository``."""

    def __init__(self) -> None:
        self._media: dict[str, Media] = {}

    async def add(self, media: Media) -> None:
        self._media[media.id] = media

    async def get(self, media_id: str) -> Media | None:
        return self._media.get(media_id)

    async def delete_many(self, media_ids: list[str]) -> list[str]:
        """Delete the given records; ids that do not exist are skipped."""
        return [media_id for media_id in media_ids if self._media.pop(media_id, None) is not None]

    async def list_all(self) -> list[Media]:
        return sorted(reversed(self._media.values()), key=lambda m: m.created_at, reverse=True)
