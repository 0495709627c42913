"""Records held by each service's own store."""

from datetime import UTC, datetime

from pydantic import Field

from social_backend.models.base_model import CamelModel


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Post(CamelModel):
    """Post record owned by the post service."""

    id: str
    user_id: str
    content: str
    media_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


class SearchDocument(CamelModel):
    """Searchable projection of a post, owned by the search service."""

    post_id: str
    user_id: str
    content: str
    created_at: datetime


class Media(CamelModel):
    """Media metadata record owned by the media service.

    The binary itself lives in object storage; ``public_id`` is its handle there.
    """

    id: str
    user_id: str
    public_id: str
    original_name: str
    mime_type: str
    url: str
    created_at: datetime = Field(default_factory=_utcnow)
