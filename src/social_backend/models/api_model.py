"""API models for the post, search and media endpoints."""

from datetime import datetime

from pydantic import Field

from social_backend.models.base_model import CamelModel


class PostCreateInput(CamelModel):
    content: str = Field(min_length=1, max_length=5000)
    media_ids: list[str] = Field(default_factory=list)


class PostResponse(CamelModel):
    id: str
    user_id: str
    content: str
    media_ids: list[str] = Field(default_factory=list)
    created_at: datetime


class PostPage(CamelModel):
    """One page of posts, newest first."""

    posts: list[PostResponse]
    current_page: int
    total_pages: int
    total_posts: int


class OperationResponse(CamelModel):
    success: bool = True
    message: str


class SearchResult(CamelModel):
    post_id: str
    user_id: str
    content: str
    created_at: datetime
    score: float


class SearchResults(CamelModel):
    results: list[SearchResult]


class MediaCreateInput(CamelModel):
    """Metadata of a binary already uploaded to object storage."""

    public_id: str = Field(min_length=1)
    original_name: str = Field(min_length=1)
    mime_type: str = Field(min_length=1)
    url: str = Field(min_length=1)


class MediaResponse(CamelModel):
    id: str
    user_id: str
    public_id: str
    original_name: str
    mime_type: str
    url: str
    created_at: datetime
