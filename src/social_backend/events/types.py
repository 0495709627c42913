"""Event payload definitions shared by producers and consumers.

Payloads are self-contained: they carry every identifier a consumer needs,
so no handler ever calls back to the producing service. On the wire the
keys are camelCase (``postId``, ``mediaIds``...).
"""

from datetime import datetime

from pydantic import ConfigDict, Field

from social_backend.models.base_model import CamelModel


class EventPayload(CamelModel):
    """Base class for event payloads. Unknown keys are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class PostCreatedEvent(EventPayload):
    """Published on ``post.created`` after a post was stored."""

    post_id: str
    user_id: str
    content: str
    created_at: datetime


class PostDeletedEvent(EventPayload):
    """Published on ``post.deleted`` after a post was removed.

    ``media_ids`` lists every media record attached to the post so the media
    service can clean up without asking the post service.
    """

    post_id: str
    user_id: str
    media_ids: list[str] = Field(default_factory=list)
